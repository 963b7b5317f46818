"""
Aether Seal verification pipeline.

Runs one image through extraction, ledger lookup or fallback matching and
classification, then schedules the audit write. Stages run sequentially
because each one is only needed when the previous one missed.
"""

import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError

from aetherseal.classifier import VerificationClassifier, build_verify_response
from aetherseal.config import MAX_IMAGE_BYTES, MAX_IMAGE_PIXELS, PROFILE_BASE_URL, SealSettings
from aetherseal.decoder import HttpWatermarkDecoder, WatermarkDecoderInterface
from aetherseal.exceptions import InvalidImageError
from aetherseal.extract import SignatureExtractor
from aetherseal.fallback import FallbackMatcher
from aetherseal.index import HttpSimilarityIndex, SimilarityIndexInterface
from aetherseal.ledger import EVENT_VERIFIED, AuditDispatcher, HttpLedger, LedgerInterface
from aetherseal.phash import PerceptualHasher
from aetherseal.types import (
    ExtractedSignature,
    LedgerResolution,
    PerceptualFingerprint,
    SealStatus,
    VerificationOutcome,
    truncate_seal_id,
)

logger = logging.getLogger(__name__)


def validate_image(
    image_bytes: bytes,
    max_bytes: int = MAX_IMAGE_BYTES,
    max_pixels: int = MAX_IMAGE_PIXELS,
) -> None:
    """
    Reject input that must not reach the extractor.

    Only the container header is checked; undecodable pixel data is left to
    the hasher's degraded mode. The declared dimensions are capped so the
    hasher never decodes an oversized raster.

    Raises:
        InvalidImageError: If the bytes are empty, too large or not an image.
    """
    if not image_bytes:
        raise InvalidImageError("Empty file provided")
    if len(image_bytes) > max_bytes:
        raise InvalidImageError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
    except Image.DecompressionBombError as e:
        raise InvalidImageError(f"Image dimensions too large: {e}")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InvalidImageError(f"Unsupported or corrupt image: {e}")
    if width * height > max_pixels:
        raise InvalidImageError(
            f"Image dimensions too large: {width}x{height} exceeds {max_pixels} pixels."
        )


class SealVerifier:
    """
    Verifies images against the seal ledger.

    Example:
        >>> verifier = SealVerifier(extractor, ledger=ledger, matcher=matcher)
        >>> async with verifier:
        ...     outcome = await verifier.verify(image_bytes)
        ...     response = verifier.render(outcome)
    """

    def __init__(
        self,
        extractor: SignatureExtractor,
        ledger: LedgerInterface,
        matcher: Optional[FallbackMatcher] = None,
        classifier: Optional[VerificationClassifier] = None,
        hasher: Optional[PerceptualHasher] = None,
        max_image_bytes: int = MAX_IMAGE_BYTES,
        max_image_pixels: int = MAX_IMAGE_PIXELS,
        profile_base_url: str = PROFILE_BASE_URL,
        decoder: Optional[WatermarkDecoderInterface] = None,
    ):
        """
        Initialize the verifier.

        Args:
            extractor: Tiered signature extractor.
            ledger: Ledger used for lookups and audit events.
            matcher: Fallback matcher; without one, misses go straight to NOT_FOUND.
            classifier: Classifier (default thresholds if omitted).
            hasher: Perceptual hasher for fallback lookups and audit metadata.
            max_image_bytes: Largest accepted input.
            max_image_pixels: Largest accepted width x height.
            profile_base_url: Base URL for creator profile links in responses.
            decoder: Decoder owned by this verifier, closed on exit.
        """
        self._extractor = extractor
        self._ledger = ledger
        self._matcher = matcher
        self._classifier = classifier or VerificationClassifier()
        self._hasher = hasher or PerceptualHasher()
        self._max_image_bytes = max_image_bytes
        self._max_image_pixels = max_image_pixels
        self._profile_base_url = profile_base_url
        self._decoder = decoder
        self._audit = AuditDispatcher(ledger)

        self._stats = {
            "verifications": 0,
            "authentic": 0,
            "inconclusive": 0,
            "not_found": 0,
            "revoked": 0,
            "fallback_matches": 0,
            "ledger_errors": 0,
        }

    @classmethod
    def from_settings(
        cls,
        settings: SealSettings,
        ledger: Optional[LedgerInterface] = None,
        decoder: Optional[WatermarkDecoderInterface] = None,
        index: Optional[SimilarityIndexInterface] = None,
    ) -> "SealVerifier":
        """
        Build a verifier from settings, creating HTTP ports where none are given.

        Raises:
            ConfigurationError: If the ledger API key is missing.
        """
        owned_decoder = None
        if decoder is None and settings.primary_tier_enabled and settings.decoder_url:
            decoder = owned_decoder = HttpWatermarkDecoder(
                settings.decoder_url,
                api_key=settings.decoder_api_key or None,
                timeout=settings.http_timeout,
            )

        if ledger is None:
            ledger = HttpLedger(
                settings.api_key, base_url=settings.ledger_url, timeout=settings.http_timeout
            )

        if index is None and settings.index_url:
            index = HttpSimilarityIndex(
                settings.index_url, api_key=settings.api_key or None, timeout=settings.http_timeout
            )

        hasher = PerceptualHasher()
        matcher = None
        if index is not None:
            matcher = FallbackMatcher(
                index, similarity_threshold=settings.thresholds.similarity, hasher=hasher
            )

        return cls(
            extractor=SignatureExtractor.from_settings(settings, decoder=decoder),
            ledger=ledger,
            matcher=matcher,
            classifier=VerificationClassifier(settings.thresholds),
            hasher=hasher,
            max_image_bytes=settings.max_image_bytes,
            max_image_pixels=settings.max_image_pixels,
            profile_base_url=settings.profile_base_url,
            decoder=owned_decoder,
        )

    async def __aenter__(self):
        if isinstance(self._decoder, HttpWatermarkDecoder):
            await self._decoder.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for in-flight audit writes and release owned clients."""
        await self._audit.drain()
        if isinstance(self._decoder, HttpWatermarkDecoder):
            await self._decoder.aclose()

    async def verify(self, image_bytes: bytes) -> VerificationOutcome:
        """
        Verify one image.

        Returns:
            The outcome. Always one of the four statuses.

        Raises:
            InvalidImageError: If the input is rejected before extraction.
        """
        validate_image(image_bytes, self._max_image_bytes, self._max_image_pixels)
        self._stats["verifications"] += 1

        extracted = await self._extractor.extract(image_bytes)
        fingerprint = self._hasher.hash(image_bytes)

        resolution = None
        fallback = None
        if extracted.found:
            resolution = await self._lookup(extracted.identifier)
        elif self._matcher is not None:
            fallback = await self._matcher.find_similar(fingerprint)

        outcome = self._classifier.classify(extracted, resolution=resolution, fallback=fallback)

        self._stats[outcome.status.value] += 1
        if outcome.matched_by_fallback:
            self._stats["fallback_matches"] += 1

        logger.info(
            f"Verified {truncate_seal_id(outcome.seal_id) or '(no seal)'}: "
            f"{outcome.status.value} ({outcome.confidence:.2f}, tier={outcome.tier})"
        )

        self._record(outcome, extracted, fingerprint)
        return outcome

    async def verify_response(self, image_bytes: bytes) -> Dict[str, Any]:
        """Verify an image and render the redacted response body."""
        return self.render(await self.verify(image_bytes))

    def render(self, outcome: VerificationOutcome) -> Dict[str, Any]:
        return build_verify_response(outcome, self._profile_base_url)

    async def _lookup(self, seal_id: str) -> Optional[LedgerResolution]:
        try:
            return await self._ledger.lookup(seal_id)
        except Exception as e:
            self._stats["ledger_errors"] += 1
            logger.warning(f"Ledger lookup failed for {truncate_seal_id(seal_id)}: {e}")
            return None

    def _record(
        self,
        outcome: VerificationOutcome,
        extracted: ExtractedSignature,
        fingerprint: PerceptualFingerprint,
    ) -> None:
        if outcome.seal_id is None or outcome.status == SealStatus.NOT_FOUND:
            return
        self._audit.dispatch(
            outcome.seal_id,
            {
                "event_type": EVENT_VERIFIED,
                "status": outcome.status.value,
                "confidence": outcome.confidence,
                "pHash": fingerprint.hex,
                "pHashDegraded": fingerprint.degraded,
                "tier": outcome.tier,
                "schemeVersion": extracted.scheme_version,
                "matchedByFallback": outcome.matched_by_fallback,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @property
    def audit(self) -> AuditDispatcher:
        return self._audit

    @property
    def stats(self) -> Dict[str, int]:
        """Return verification statistics."""
        return {**self._stats, "audit_failures": self._audit.failures}
