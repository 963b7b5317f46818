"""
Aether Seal fallback matching.

When no seal can be extracted, the image's perceptual fingerprint is
looked up in the similarity index. A perceptual match proves visual
similarity only, so accepted matches are reported as inconclusive by the
classifier and can never reach authentic.
"""

import logging
from typing import Optional

from aetherseal.config import DEFAULT_THRESHOLDS
from aetherseal.index import SimilarityIndexInterface
from aetherseal.phash import PerceptualHasher
from aetherseal.types import FallbackMatch, PerceptualFingerprint, truncate_seal_id

logger = logging.getLogger(__name__)


class FallbackMatcher:
    """
    Accepts the closest perceptual match above a similarity threshold.

    Example:
        >>> matcher = FallbackMatcher(index, similarity_threshold=85.0)
        >>> match = await matcher.find_similar(hasher.hash(image_bytes))
    """

    def __init__(
        self,
        index: SimilarityIndexInterface,
        similarity_threshold: float = DEFAULT_THRESHOLDS.similarity,
        hasher: Optional[PerceptualHasher] = None,
    ):
        """
        Initialize the matcher.

        Args:
            index: Similarity index to query.
            similarity_threshold: Minimum similarity percentage (inclusive).
            hasher: Hasher used by match_image (default: PerceptualHasher()).
        """
        self._index = index
        self._threshold = similarity_threshold
        self._hasher = hasher or PerceptualHasher()

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    async def find_similar(self, fingerprint: PerceptualFingerprint) -> Optional[FallbackMatch]:
        """
        Query the index for a fingerprint.

        Returns:
            The match if its similarity meets the threshold, else None.
            Index failures are reported as None.
        """
        try:
            match = await self._index.find_similar(fingerprint)
        except Exception as e:
            logger.warning(f"Similarity index unavailable: {type(e).__name__}: {e}")
            return None

        if match is None:
            logger.debug(f"No similar image for fingerprint {fingerprint.hex}")
            return None

        if match.similarity < self._threshold:
            logger.debug(
                f"Closest match {truncate_seal_id(match.entry.seal_id)} at "
                f"{match.similarity:.1f}% is below {self._threshold:.1f}%"
            )
            return None

        logger.info(
            f"Fallback match {truncate_seal_id(match.entry.seal_id)} at {match.similarity:.1f}%"
        )
        return match

    async def match_image(self, image_bytes: bytes) -> Optional[FallbackMatch]:
        """Fingerprint image bytes and query the index."""
        return await self.find_similar(self._hasher.hash(image_bytes))
