"""
Aether Seal exceptions.

Only configuration faults and malformed input propagate out of the
verification pipeline. Tier misses, transport faults and invalid
certificates are ordinary return values, never exceptions.
"""


class SealError(Exception):
    """Base exception for Aether Seal errors."""

    pass


class ConfigurationError(SealError):
    """Raised when required key material or service credentials are missing."""

    def __init__(self, message: str = "Aether Seal is not configured"):
        super().__init__(message)


class InvalidImageError(SealError):
    """Raised when image bytes are rejected before extraction begins."""

    def __init__(self, message: str = "Invalid image"):
        super().__init__(message)


class CertificateIssuanceError(SealError):
    """Raised when a certificate is requested for an outcome that is not authentic."""

    pass


class SealNotFoundError(SealError):
    """Raised when a seal id is not present in the ledger."""

    def __init__(self, seal_id: str):
        self.seal_id = seal_id
        super().__init__(f"Seal not found: {seal_id}")


class SealRevokedError(SealError):
    """Raised when a certificate is requested for a revoked seal."""

    def __init__(self, seal_id: str):
        self.seal_id = seal_id
        super().__init__(f"Seal has been revoked: {seal_id}")


class SealPrivateError(SealError):
    """Raised when a certificate is requested for a private seal."""

    def __init__(self, seal_id: str):
        self.seal_id = seal_id
        super().__init__(f"Seal is private: {seal_id}")
