# aetherseal/config.py
"""
Centralized configuration for Aether Seal.

Deployment endpoints are read from environment variables at import time with
sensible defaults. Per-instance runtime settings (thresholds, credentials,
tier selection) live in SealSettings, which reads the environment when it is
built so that tests and embedding applications can inject their own values.

Usage:
    from aetherseal.config import SealSettings, get_profile_url

    settings = SealSettings.from_env()
    if outcome.confidence >= settings.thresholds.authentic:
        ...

Environment Variables:
    OWM_API_URL: Ledger API base URL (default: https://open-wardrobe-market.com)
    SEAL_PROFILE_BASE_URL: Base URL for creator profile links (default: OWM_API_URL)
    SEAL_WATERMARK_DECODER_URL: Remote watermark decoder endpoint (default: unset)
    SEAL_MAX_IMAGE_BYTES: Largest accepted upload (default: 10 MiB)
    SEAL_MAX_IMAGE_PIXELS: Largest accepted width x height (default: 40 megapixels)
    SEAL_THRESHOLD_PROFILE: "default" (0.75/0.40) or "legacy" (0.85/0.50)
    SEAL_THRESHOLD_AUTHENTIC / SEAL_THRESHOLD_INCONCLUSIVE / SEAL_SIMILARITY_THRESHOLD:
        Individual threshold overrides
    SEAL_PRIMARY_TIER_ENABLED: Set to "false" to skip the remote decoder tier
    SEAL_EMBED_KEY: HMAC key for legacy metadata seals
    SEAL_CHECKER_API_KEY: API key for the ledger resolve endpoint
    SEAL_WATERMARK_DECODER_API_KEY: API key for the remote decoder
    SEAL_SIMILARITY_INDEX_URL: Perceptual similarity index endpoint (default: unset)
    SEAL_HTTP_TIMEOUT: Timeout in seconds for remote ports (default: 10)
    SEAL_SIGNING_PRIVATE_KEY / SEAL_SIGNING_PUBLIC_KEY: Certificate keys (JWK or PEM)
"""

import os
from dataclasses import dataclass, field
from typing import Final, Mapping, Optional

# =============================================================================
# Endpoint Configuration
# =============================================================================

# Ledger API hosting /api/seal/resolve
OWM_API_URL: Final[str] = os.getenv("OWM_API_URL", "https://open-wardrobe-market.com")

# Creator profile pages are served from the marketplace domain
PROFILE_BASE_URL: Final[str] = os.getenv("SEAL_PROFILE_BASE_URL", OWM_API_URL)

# Remote perceptual-watermark decoder (primary tier)
WATERMARK_DECODER_URL: Final[str] = os.getenv("SEAL_WATERMARK_DECODER_URL", "")

# =============================================================================
# Limits
# =============================================================================

MAX_IMAGE_BYTES: Final[int] = int(os.getenv("SEAL_MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))
MAX_IMAGE_PIXELS: Final[int] = int(os.getenv("SEAL_MAX_IMAGE_PIXELS", str(40_000_000)))

# The public key never changes for the lifetime of a process
PUBLIC_KEY_CACHE_MAX_AGE: Final[int] = 86400

DEFAULT_HTTP_TIMEOUT: Final[float] = 10.0

# =============================================================================
# Key Material
# =============================================================================

PRIVATE_KEY_ENV: Final[str] = "SEAL_SIGNING_PRIVATE_KEY"
PUBLIC_KEY_ENV: Final[str] = "SEAL_SIGNING_PUBLIC_KEY"


# =============================================================================
# Thresholds
# =============================================================================


@dataclass(frozen=True)
class Thresholds:
    """
    Confidence cut-offs used by the verification classifier.

    Attributes:
        authentic: Minimum extractor confidence for AUTHENTIC (inclusive).
        inconclusive: Minimum confidence for an unregistered identifier to be
            reported as INCONCLUSIVE rather than NOT_FOUND (inclusive).
        similarity: Minimum perceptual similarity percentage for a fallback
            match to be accepted (inclusive).
    """

    authentic: float = 0.75
    inconclusive: float = 0.40
    similarity: float = 85.0

    def __post_init__(self):
        if not 0.0 <= self.inconclusive <= self.authentic <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= inconclusive <= authentic <= 1 "
                f"(got inconclusive={self.inconclusive}, authentic={self.authentic})"
            )
        if not 0.0 <= self.similarity <= 100.0:
            raise ValueError(f"Similarity threshold must be a percentage (got {self.similarity})")


# Tuned for the DWT watermark decoder, which survives recompression at 70-85%
DEFAULT_THRESHOLDS: Final[Thresholds] = Thresholds()

# Single-tier deployments that only read metadata seals
LEGACY_THRESHOLDS: Final[Thresholds] = Thresholds(authentic=0.85, inconclusive=0.50)

THRESHOLD_PROFILES: Final[Mapping[str, Thresholds]] = {
    "default": DEFAULT_THRESHOLDS,
    "legacy": LEGACY_THRESHOLDS,
}


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_float(value: Optional[str], default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {value!r})")


@dataclass(frozen=True)
class SealSettings:
    """
    Runtime settings for one verifier instance.

    Example:
        >>> settings = SealSettings(thresholds=LEGACY_THRESHOLDS, primary_tier_enabled=False)
        >>> settings.thresholds.authentic
        0.85
    """

    thresholds: Thresholds = field(default_factory=Thresholds)
    primary_tier_enabled: bool = True
    embed_key: str = ""
    api_key: str = ""
    decoder_url: str = WATERMARK_DECODER_URL
    decoder_api_key: str = ""
    index_url: str = ""
    ledger_url: str = OWM_API_URL
    profile_base_url: str = PROFILE_BASE_URL
    max_image_bytes: int = MAX_IMAGE_BYTES
    max_image_pixels: int = MAX_IMAGE_PIXELS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SealSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ).

        Raises:
            ValueError: If a threshold profile is unknown or a value is malformed.
        """
        env = os.environ if environ is None else environ

        profile_name = env.get("SEAL_THRESHOLD_PROFILE", "default").strip().lower() or "default"
        if profile_name not in THRESHOLD_PROFILES:
            raise ValueError(
                f"Unknown threshold profile {profile_name!r} "
                f"(expected one of: {', '.join(THRESHOLD_PROFILES)})"
            )
        base = THRESHOLD_PROFILES[profile_name]

        thresholds = Thresholds(
            authentic=_parse_float(
                env.get("SEAL_THRESHOLD_AUTHENTIC"), base.authentic, "SEAL_THRESHOLD_AUTHENTIC"
            ),
            inconclusive=_parse_float(
                env.get("SEAL_THRESHOLD_INCONCLUSIVE"),
                base.inconclusive,
                "SEAL_THRESHOLD_INCONCLUSIVE",
            ),
            similarity=_parse_float(
                env.get("SEAL_SIMILARITY_THRESHOLD"), base.similarity, "SEAL_SIMILARITY_THRESHOLD"
            ),
        )

        ledger_url = env.get("OWM_API_URL", OWM_API_URL)

        return cls(
            thresholds=thresholds,
            primary_tier_enabled=_parse_bool(env.get("SEAL_PRIMARY_TIER_ENABLED"), True),
            embed_key=env.get("SEAL_EMBED_KEY", ""),
            api_key=env.get("SEAL_CHECKER_API_KEY", ""),
            decoder_url=env.get("SEAL_WATERMARK_DECODER_URL", WATERMARK_DECODER_URL),
            decoder_api_key=env.get("SEAL_WATERMARK_DECODER_API_KEY", ""),
            index_url=env.get("SEAL_SIMILARITY_INDEX_URL", ""),
            ledger_url=ledger_url,
            profile_base_url=env.get("SEAL_PROFILE_BASE_URL", ledger_url),
            max_image_bytes=int(env.get("SEAL_MAX_IMAGE_BYTES", str(MAX_IMAGE_BYTES))),
            max_image_pixels=int(env.get("SEAL_MAX_IMAGE_PIXELS", str(MAX_IMAGE_PIXELS))),
            http_timeout=_parse_float(
                env.get("SEAL_HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT, "SEAL_HTTP_TIMEOUT"
            ),
        )


# =============================================================================
# Helper Functions
# =============================================================================


def get_profile_url(user_id: str, base_url: Optional[str] = None) -> str:
    """
    Build the public profile link for a creator.

    Args:
        user_id: The creator's ledger user id
        base_url: Override for PROFILE_BASE_URL

    Returns:
        Profile URL (e.g., "https://open-wardrobe-market.com/profile/u_123")
    """
    domain = (base_url or PROFILE_BASE_URL).rstrip("/")
    return f"{domain}/profile/{user_id}"


def _mask(value: str) -> str:
    return "(set)" if value else "(unset)"


def print_config(settings: Optional[SealSettings] = None) -> None:
    """Print current configuration with secrets masked (useful for debugging)."""
    settings = settings or SealSettings.from_env()
    print("Aether Seal Configuration:")
    print(f"  LEDGER_URL:           {settings.ledger_url}")
    print(f"  PROFILE_BASE_URL:     {settings.profile_base_url}")
    print(f"  DECODER_URL:          {settings.decoder_url or '(unset)'}")
    print(f"  INDEX_URL:            {settings.index_url or '(unset)'}")
    print(f"  PRIMARY_TIER_ENABLED: {settings.primary_tier_enabled}")
    print(f"  THRESHOLD_AUTHENTIC:  {settings.thresholds.authentic}")
    print(f"  THRESHOLD_INCONCL.:   {settings.thresholds.inconclusive}")
    print(f"  SIMILARITY_THRESHOLD: {settings.thresholds.similarity}")
    print(f"  MAX_IMAGE_BYTES:      {settings.max_image_bytes}")
    print(f"  MAX_IMAGE_PIXELS:     {settings.max_image_pixels}")
    print(f"  SEAL_EMBED_KEY:       {_mask(settings.embed_key)}")
    print(f"  SEAL_CHECKER_API_KEY: {_mask(settings.api_key)}")
    print(f"  {PRIVATE_KEY_ENV}: {_mask(os.getenv(PRIVATE_KEY_ENV, ''))}")
    print(f"  {PUBLIC_KEY_ENV}:  {_mask(os.getenv(PUBLIC_KEY_ENV, ''))}")


if __name__ == "__main__":
    print_config()
