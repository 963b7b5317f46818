"""
Aether Seal data model.

Value objects passed between the extractor, the classifier and the
certificate service. Wire formats (camelCase JSON) are produced by the
to_dict() helpers; parsing of remote responses lives in aetherseal.schemas.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# Enumerations
# =============================================================================


class SealStatus(str, Enum):
    """Terminal verification outcomes."""

    AUTHENTIC = "authentic"
    INCONCLUSIVE = "inconclusive"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"


class Visibility(str, Enum):
    """Ledger visibility of a registered asset."""

    PUBLIC = "public"
    PRIVATE = "private"
    UNLISTED = "unlisted"


class LicenseType(str, Enum):
    """License attached to a registered asset."""

    STANDARD = "standard"
    CC_BY = "cc_by"
    CC_BY_NC = "cc_by_nc"
    ALL_RIGHTS_RESERVED = "all_rights_reserved"

    @property
    def label(self) -> str:
        return LICENSE_DETAILS[self][0]

    @property
    def description(self) -> str:
        return LICENSE_DETAILS[self][1]


LICENSE_DETAILS = {
    LicenseType.STANDARD: (
        "Standard License",
        "Personal and commercial use permitted under the marketplace terms.",
    ),
    LicenseType.CC_BY: (
        "CC BY 4.0",
        "Reuse permitted, including commercially, with attribution to the creator.",
    ),
    LicenseType.CC_BY_NC: (
        "CC BY-NC 4.0",
        "Reuse permitted for non-commercial purposes with attribution to the creator.",
    ),
    LicenseType.ALL_RIGHTS_RESERVED: (
        "All Rights Reserved",
        "No reuse permitted without explicit permission from the creator.",
    ),
}


# =============================================================================
# Extraction
# =============================================================================


@dataclass(frozen=True)
class GeometricHints:
    """Transforms the remote decoder undid to recover the watermark."""

    rotation_degrees: float = 0.0
    scale_factor: float = 1.0


@dataclass(frozen=True)
class ExtractedSignature:
    """
    Result of running the extraction tiers over one image.

    Attributes:
        identifier: Seal id recovered from the image, or None on a miss.
        confidence: Detector confidence in [0, 1].
        scheme_version: 2 for the remote watermark, 1 (or embedded) for legacy seals.
        geometric_hints: Rotation/scale recovered by the remote decoder.
        tier: Name of the tier that produced the detection.
    """

    identifier: Optional[str] = None
    confidence: float = 0.0
    scheme_version: Optional[int] = None
    geometric_hints: Optional[GeometricHints] = None
    tier: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.identifier is not None

    @classmethod
    def missing(cls) -> "ExtractedSignature":
        return cls()


@dataclass(frozen=True)
class PerceptualFingerprint:
    """
    64-bit average-hash of an image.

    Attributes:
        value: The packed bits (row-major, most significant bit first).
        degraded: True when the image could not be decoded and the value was
            taken from a digest of the raw bytes. Degraded fingerprints carry
            no transform tolerance.
    """

    value: int
    degraded: bool = False

    BITS = 64

    def __post_init__(self):
        if not 0 <= self.value < (1 << self.BITS):
            raise ValueError(f"Fingerprint must fit in {self.BITS} bits")

    @property
    def hex(self) -> str:
        return f"{self.value:016x}"

    @classmethod
    def from_hex(cls, value: str, degraded: bool = False) -> "PerceptualFingerprint":
        if len(value) != 16:
            raise ValueError(f"Fingerprint hex must be 16 characters (got {len(value)})")
        return cls(value=int(value, 16), degraded=degraded)

    def __str__(self) -> str:
        return self.hex


# =============================================================================
# Ledger
# =============================================================================


@dataclass(frozen=True)
class AssetLocator:
    cdn_url: str
    storage_path: str


@dataclass(frozen=True)
class Provenance:
    model_provider: str
    model_name: Optional[str]
    pipeline_mode: str


@dataclass(frozen=True)
class LedgerEntry:
    """
    A registered asset as recorded by the ledger.

    The core never writes entries. revoked_at, once set, is permanent.
    """

    seal_id: str
    owner_id: str
    asset: AssetLocator
    provenance: Provenance
    created_at: str
    visibility: Visibility = Visibility.PUBLIC
    revoked_at: Optional[str] = None
    license_type: Optional[LicenseType] = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE


@dataclass(frozen=True)
class CreatorInfo:
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class LedgerResolution:
    """Ledger hit: the entry plus the creator's public profile fields."""

    entry: LedgerEntry
    creator: Optional[CreatorInfo] = None


@dataclass(frozen=True)
class FallbackMatch:
    """Closest registered entry by perceptual fingerprint."""

    entry: LedgerEntry
    similarity: float
    hamming_distance: int
    creator: Optional[CreatorInfo] = None


# =============================================================================
# Verification
# =============================================================================


@dataclass(frozen=True)
class VerificationOutcome:
    """
    The fused verification judgment.

    ledger_entry and creator are never redacted here; redaction for private
    entries happens when the outcome is rendered for a caller.
    """

    status: SealStatus
    confidence: float
    seal_id: Optional[str] = None
    ledger_entry: Optional[LedgerEntry] = None
    creator: Optional[CreatorInfo] = None
    matched_by_fallback: bool = False
    fallback_similarity: Optional[float] = None
    tier: Optional[str] = None


# =============================================================================
# Certificates
# =============================================================================

CERTIFICATE_TYPE = "OWM_AETHER_SEAL_CERT"
CERTIFICATE_VERSION = 1


@dataclass(frozen=True)
class Certificate:
    """
    Signed attestation that a seal was verified as authentic.

    to_dict() defines the canonical key order that gets signed.
    """

    seal_id: str
    confidence: float
    cdn_url: str
    storage_path: str
    user_id: str
    display_name: Optional[str]
    profile_url: Optional[str]
    created_at: str
    model_provider: str
    model_name: Optional[str]
    pipeline_mode: str
    revoked: bool
    issued_at: str
    type: str = CERTIFICATE_TYPE
    version: int = CERTIFICATE_VERSION
    status: str = SealStatus.AUTHENTIC.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format (camelCase, canonical key order)."""
        return {
            "type": self.type,
            "version": self.version,
            "sealId": self.seal_id,
            "status": self.status,
            "confidence": self.confidence,
            "asset": {
                "cdnUrl": self.cdn_url,
                "storagePath": self.storage_path,
            },
            "creator": {
                "userId": self.user_id,
                "displayName": self.display_name,
                "profileUrl": self.profile_url,
            },
            "provenance": {
                "createdAt": self.created_at,
                "modelProvider": self.model_provider,
                "modelName": self.model_name,
                "pipelineMode": self.pipeline_mode,
            },
            "revoked": self.revoked,
            "issuedAt": self.issued_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Certificate":
        """
        Create from the wire format.

        Raises:
            ValueError: If a required field is missing or mistyped.
        """
        try:
            asset = data["asset"]
            creator = data["creator"]
            provenance = data["provenance"]
            return cls(
                type=data["type"],
                version=data["version"],
                seal_id=data["sealId"],
                status=data["status"],
                confidence=data["confidence"],
                cdn_url=asset["cdnUrl"],
                storage_path=asset["storagePath"],
                user_id=creator["userId"],
                display_name=creator.get("displayName"),
                profile_url=creator.get("profileUrl"),
                created_at=provenance["createdAt"],
                model_provider=provenance["modelProvider"],
                model_name=provenance.get("modelName"),
                pipeline_mode=provenance["pipelineMode"],
                revoked=data["revoked"],
                issued_at=data["issuedAt"],
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed certificate: {e}")


@dataclass(frozen=True)
class SignedCertificate:
    """The distributed artifact: compact JWS plus the certificate it carries."""

    jws: str
    certificate: Certificate

    def to_dict(self) -> Dict[str, Any]:
        return {"jws": self.jws, "certificate": self.certificate.to_dict()}


@dataclass(frozen=True)
class CertificateVerification:
    """Result of checking a compact token."""

    valid: bool
    certificate: Optional[Certificate] = None
    error: Optional[str] = field(default=None, compare=False)


def truncate_seal_id(seal_id: Optional[str], prefix_len: int = 12) -> Optional[str]:
    """
    Shorten a seal id for log lines.

    Example:
        q83vEjRWeJCrze8SNFZ4kA== -> q83vEjRWeJCr...
    """
    if not seal_id or len(seal_id) <= prefix_len:
        return seal_id
    return f"{seal_id[:prefix_len]}..."
