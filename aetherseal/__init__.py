"""
Aether Seal - provenance verification for platform-generated images.

This package recovers seal identifiers from image bytes, classifies them
against the seal ledger, and issues portable Ed25519-signed certificates
for authentic results.
"""

__version__ = "0.3.0"

# Core pipeline
from .types import (
    SealStatus,
    Visibility,
    LicenseType,
    ExtractedSignature,
    PerceptualFingerprint,
    LedgerEntry,
    VerificationOutcome,
    Certificate,
    SignedCertificate,
    CertificateVerification,
)
from .config import SealSettings, Thresholds, DEFAULT_THRESHOLDS, LEGACY_THRESHOLDS
from .exceptions import (
    SealError,
    ConfigurationError,
    InvalidImageError,
    CertificateIssuanceError,
    SealNotFoundError,
    SealRevokedError,
    SealPrivateError,
)
from .phash import PerceptualHasher
from .extract import SignatureExtractor
from .classifier import VerificationClassifier

# Key management
from .keys import generate_identity, KeyPair, KeyStore


# Pipeline services and port adapters (lazy imports)
def __getattr__(name):
    """Lazy loading of adapters and services."""
    if name in ("SealVerifier", "validate_image"):
        from . import verifier

        return getattr(verifier, name)
    elif name in ("CertificateService", "CertificateAuthority", "get_certificate_service"):
        from . import certificate

        return getattr(certificate, name)
    elif name == "FallbackMatcher":
        from .fallback import FallbackMatcher

        return FallbackMatcher
    elif name in ("LedgerInterface", "MemoryLedger", "HttpLedger", "AuditDispatcher"):
        from . import ledger

        return getattr(ledger, name)
    elif name in ("SimilarityIndexInterface", "MemorySimilarityIndex", "HttpSimilarityIndex"):
        from . import index

        return getattr(index, name)
    elif name in ("WatermarkDecoderInterface", "HttpWatermarkDecoder"):
        from . import decoder

        return getattr(decoder, name)
    raise AttributeError(f"module 'aetherseal' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Types
    "SealStatus",
    "Visibility",
    "LicenseType",
    "ExtractedSignature",
    "PerceptualFingerprint",
    "LedgerEntry",
    "VerificationOutcome",
    "Certificate",
    "SignedCertificate",
    "CertificateVerification",
    # Configuration
    "SealSettings",
    "Thresholds",
    "DEFAULT_THRESHOLDS",
    "LEGACY_THRESHOLDS",
    # Errors
    "SealError",
    "ConfigurationError",
    "InvalidImageError",
    "CertificateIssuanceError",
    "SealNotFoundError",
    "SealRevokedError",
    "SealPrivateError",
    # Pipeline
    "PerceptualHasher",
    "SignatureExtractor",
    "VerificationClassifier",
    "FallbackMatcher",
    "SealVerifier",
    "validate_image",
    # Certificates
    "CertificateService",
    "CertificateAuthority",
    "get_certificate_service",
    "generate_identity",
    "KeyPair",
    "KeyStore",
    # Ports
    "LedgerInterface",
    "MemoryLedger",
    "HttpLedger",
    "AuditDispatcher",
    "SimilarityIndexInterface",
    "MemorySimilarityIndex",
    "HttpSimilarityIndex",
    "WatermarkDecoderInterface",
    "HttpWatermarkDecoder",
]
