"""
Aether Seal signature extraction.

Recovers a seal id from image bytes using ranked, independent tiers:

1. Remote watermark decoder (invisible DWT watermark, scheme version 2)
2. Legacy metadata seal (JSON record in EXIF ImageDescription bound to the
   pixel dimensions by an HMAC tag, scheme version 1)

Tiers run strictly in order and stop at the first detection. Each tier
reports a Detected or Miss value; extraction as a whole never raises.
"""

import base64
import hashlib
import hmac
import io
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image

from aetherseal.config import SealSettings
from aetherseal.decoder import WatermarkDecoderInterface
from aetherseal.types import ExtractedSignature, truncate_seal_id

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

WATERMARK_SCHEME_VERSION = 2
LEGACY_SCHEME_VERSION = 1

# EXIF ImageDescription
EXIF_IMAGE_DESCRIPTION = 0x010E

LEGACY_TAG_LENGTH = 16
LEGACY_VERIFIED_CONFIDENCE = 0.98
LEGACY_UNVERIFIED_CONFIDENCE = 0.5


# =============================================================================
# Tier Results
# =============================================================================


@dataclass(frozen=True)
class Detected:
    """A tier recovered an identifier."""

    signature: ExtractedSignature


@dataclass(frozen=True)
class Miss:
    """A tier found nothing. Not an error."""

    reason: str


TierResult = Union[Detected, Miss]


class ExtractionTier(ABC):
    """One ranked strategy in the extraction chain."""

    name: str = "tier"

    @abstractmethod
    async def attempt(self, image_bytes: bytes) -> TierResult:
        """Try to recover an identifier from the image."""
        pass


# =============================================================================
# Primary Tier
# =============================================================================


class RemoteWatermarkTier(ExtractionTier):
    """Delegates to the remote watermark decoder."""

    name = "watermark"

    def __init__(self, decoder: WatermarkDecoderInterface):
        self._decoder = decoder

    async def attempt(self, image_bytes: bytes) -> TierResult:
        try:
            response = await self._decoder.decode(image_bytes)
        except Exception as e:
            logger.warning(f"Watermark decoder unavailable: {type(e).__name__}: {e}")
            return Miss(f"decoder failure: {type(e).__name__}")

        if not response.detected:
            return Miss("no watermark detected")
        if not response.seal_id:
            return Miss("decoder reported detection without a seal id")

        hints = response.transforms.to_hints() if response.transforms else None
        return Detected(
            ExtractedSignature(
                identifier=response.seal_id,
                confidence=response.confidence,
                scheme_version=WATERMARK_SCHEME_VERSION,
                geometric_hints=hints,
                tier=self.name,
            )
        )


# =============================================================================
# Legacy Tier
# =============================================================================


def compute_legacy_tag(embed_key: str, seal_id: str, width: int, height: int) -> str:
    """
    Compute the tag binding a legacy seal id to the image dimensions.

    HMAC-SHA256(embed_key, seal_id || "{width}x{height}"), base64-encoded and
    truncated to 16 characters.
    """
    mac = hmac.new(embed_key.encode("utf-8"), digestmod=hashlib.sha256)
    mac.update(seal_id.encode("utf-8"))
    mac.update(f"{width}x{height}".encode("utf-8"))
    return base64.b64encode(mac.digest()).decode("ascii")[:LEGACY_TAG_LENGTH]


def read_legacy_record(image_bytes: bytes) -> Tuple[Optional[Dict[str, Any]], int, int]:
    """
    Read the legacy seal record from EXIF metadata.

    Returns:
        Tuple of (record or None, width, height)

    Raises:
        Exception: If the image cannot be opened.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        width, height = img.size
        exif = img.getexif()
        description = exif.get(EXIF_IMAGE_DESCRIPTION) if exif else None

    if not description:
        return None, width, height

    if isinstance(description, bytes):
        description = description.decode("utf-8", errors="replace")

    try:
        record = json.loads(description)
    except (ValueError, TypeError):
        return None, width, height

    if not isinstance(record, dict) or not isinstance(record.get("owm_seal_id"), str):
        return None, width, height

    return record, width, height


class LegacyMetadataTier(ExtractionTier):
    """
    Reads seals embedded as JSON in EXIF ImageDescription.

    A matching tag yields confidence 0.98; a mismatched or missing tag still
    returns the identifier but at 0.5, since it is unauthenticated.
    """

    name = "legacy"

    def __init__(self, embed_key: str):
        self._embed_key = embed_key

    async def attempt(self, image_bytes: bytes) -> TierResult:
        if not self._embed_key:
            logger.warning("SEAL_EMBED_KEY not configured, skipping legacy seal tier")
            return Miss("embed key not configured")

        try:
            record, width, height = read_legacy_record(image_bytes)
        except Exception as e:
            logger.debug(f"Could not read image metadata: {e}")
            return Miss("metadata unreadable")

        if record is None:
            return Miss("no legacy seal record")

        seal_id = record["owm_seal_id"]
        expected = compute_legacy_tag(self._embed_key, seal_id, width, height)
        stored = record.get("owm_seal_sig")

        if isinstance(stored, str) and hmac.compare_digest(stored, expected):
            confidence = LEGACY_VERIFIED_CONFIDENCE
        else:
            confidence = LEGACY_UNVERIFIED_CONFIDENCE

        version = record.get("owm_seal_version")
        if not isinstance(version, int) or isinstance(version, bool):
            version = LEGACY_SCHEME_VERSION

        logger.info(f"Found legacy seal: {truncate_seal_id(seal_id)} (confidence: {confidence})")

        return Detected(
            ExtractedSignature(
                identifier=seal_id,
                confidence=confidence,
                scheme_version=version,
                tier=self.name,
            )
        )


# =============================================================================
# Extractor
# =============================================================================


class SignatureExtractor:
    """
    Runs the extraction tiers in priority order.

    Example:
        >>> extractor = SignatureExtractor(decoder=decoder, embed_key="secret")
        >>> signature = await extractor.extract(image_bytes)
        >>> signature.found, signature.confidence
        (True, 0.91)
    """

    def __init__(
        self,
        decoder: Optional[WatermarkDecoderInterface] = None,
        embed_key: str = "",
        primary_tier_enabled: bool = True,
        tiers: Optional[List[ExtractionTier]] = None,
    ):
        """
        Initialize the extractor.

        Args:
            decoder: Remote watermark decoder for the primary tier.
            embed_key: HMAC key for legacy metadata seals.
            primary_tier_enabled: Set False where no remote decoder is deployed.
            tiers: Explicit tier list, overriding the defaults.
        """
        if tiers is not None:
            self._tiers = list(tiers)
            return

        self._tiers: List[ExtractionTier] = []
        if primary_tier_enabled and decoder is not None:
            self._tiers.append(RemoteWatermarkTier(decoder))
        elif primary_tier_enabled:
            logger.debug("No watermark decoder configured, primary tier disabled")
        self._tiers.append(LegacyMetadataTier(embed_key))

    @classmethod
    def from_settings(
        cls, settings: SealSettings, decoder: Optional[WatermarkDecoderInterface] = None
    ) -> "SignatureExtractor":
        return cls(
            decoder=decoder,
            embed_key=settings.embed_key,
            primary_tier_enabled=settings.primary_tier_enabled,
        )

    @property
    def tier_names(self) -> List[str]:
        return [tier.name for tier in self._tiers]

    async def extract(self, image_bytes: bytes) -> ExtractedSignature:
        """
        Recover a seal id from image bytes.

        Returns:
            The first detection, or an absent-identifier result with confidence 0.
        """
        for tier in self._tiers:
            try:
                result = await tier.attempt(image_bytes)
            except Exception as e:
                logger.warning(f"Tier {tier.name} failed: {type(e).__name__}: {e}")
                result = Miss(f"tier error: {type(e).__name__}")

            if isinstance(result, Detected):
                return result.signature

            logger.debug(f"Tier {tier.name} miss: {result.reason}")

        logger.debug("No seal found in image")
        return ExtractedSignature.missing()
