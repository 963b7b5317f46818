"""
Aether Seal similarity index port.

Finds the registered asset whose perceptual fingerprint is closest to a
query fingerprint. Supports an in-memory backend for tests and
single-instance deployments, and an HTTP backend for the hosted index.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import httpx

from aetherseal.config import DEFAULT_HTTP_TIMEOUT
from aetherseal.phash import hamming_distance, similarity_percentage
from aetherseal.schemas import SimilarityResponse
from aetherseal.types import CreatorInfo, FallbackMatch, LedgerEntry, PerceptualFingerprint

logger = logging.getLogger(__name__)


class SimilarityIndexInterface(ABC):
    """Abstract interface for perceptual similarity indexes."""

    @abstractmethod
    async def find_similar(self, fingerprint: PerceptualFingerprint) -> Optional[FallbackMatch]:
        """
        Return the closest registered entry, whatever its similarity.

        Returns None when the index is empty. May raise on transport faults.
        """
        pass


class MemorySimilarityIndex(SimilarityIndexInterface):
    """
    In-memory similarity index with a linear nearest-neighbour scan.

    Example:
        >>> index = MemorySimilarityIndex()
        >>> await index.register(entry, hasher.hash(original_bytes))
        >>> match = await index.find_similar(hasher.hash(recompressed_bytes))
        >>> match.similarity
        96.875
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[LedgerEntry, PerceptualFingerprint, Optional[CreatorInfo]]] = {}
        self._lock = asyncio.Lock()

    async def register(
        self,
        entry: LedgerEntry,
        fingerprint: PerceptualFingerprint,
        creator: Optional[CreatorInfo] = None,
    ) -> None:
        """Index an entry under its fingerprint (replacing any previous one)."""
        async with self._lock:
            self._entries[entry.seal_id] = (entry, fingerprint, creator)

    async def remove(self, seal_id: str) -> bool:
        async with self._lock:
            return self._entries.pop(seal_id, None) is not None

    async def find_similar(self, fingerprint: PerceptualFingerprint) -> Optional[FallbackMatch]:
        async with self._lock:
            candidates = list(self._entries.values())

        best: Optional[FallbackMatch] = None
        for entry, registered, creator in candidates:
            distance = hamming_distance(fingerprint, registered)
            if best is None or distance < best.hamming_distance:
                best = FallbackMatch(
                    entry=entry,
                    similarity=similarity_percentage(distance),
                    hamming_distance=distance,
                    creator=creator,
                )
        return best

    def __len__(self) -> int:
        return len(self._entries)


class HttpSimilarityIndex(SimilarityIndexInterface):
    """
    Similarity index reached over HTTP.

    Sends {"fingerprint": "<16 hex chars>"} and expects
    {"found", "match", "similarity": {"hammingDistance", "percentage"}, "creator"}.
    The reported percentage is recomputed from the Hamming distance.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise ValueError("HttpSimilarityIndex requires an index URL")
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def find_similar(self, fingerprint: PerceptualFingerprint) -> Optional[FallbackMatch]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key

        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(
                self._url, json={"fingerprint": fingerprint.hex}, headers=headers
            )
            response.raise_for_status()
            body = SimilarityResponse.model_validate(response.json())
        finally:
            if self._client is None:
                await client.aclose()

        if not body.found or body.match is None or body.similarity is None:
            return None

        distance = body.similarity.hamming_distance
        similarity = similarity_percentage(distance)
        if abs(similarity - body.similarity.percentage) > 1e-6:
            logger.debug(
                f"Index reported {body.similarity.percentage}% for distance {distance}, "
                f"using {similarity}%"
            )

        return FallbackMatch(
            entry=body.match.to_entry(),
            similarity=similarity,
            hamming_distance=distance,
            creator=body.creator.to_creator() if body.creator else None,
        )
