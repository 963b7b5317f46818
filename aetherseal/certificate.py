"""
Aether Seal certificates.

A certificate is a JWS compact token (EdDSA over Ed25519) whose payload is
the canonical JSON serialization of a Certificate. Anyone holding the public
key can check it offline.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jwcrypto import jws
from jwcrypto.common import JWException, base64url_decode, base64url_encode, json_encode

from aetherseal.config import PROFILE_BASE_URL, PUBLIC_KEY_CACHE_MAX_AGE, get_profile_url
from aetherseal.exceptions import (
    CertificateIssuanceError,
    SealNotFoundError,
    SealPrivateError,
    SealRevokedError,
)
from aetherseal.keys import KeyStore
from aetherseal.ledger import EVENT_CERT_ISSUED, LedgerInterface, utc_now_iso
from aetherseal.types import (
    CERTIFICATE_TYPE,
    Certificate,
    CertificateVerification,
    SealStatus,
    SignedCertificate,
    VerificationOutcome,
    truncate_seal_id,
)

logger = logging.getLogger(__name__)

PROTECTED_HEADER = {"alg": "EdDSA", "typ": "JWT"}

# Certificates issued by seal id carry the confidence of a verified legacy match
ISSUED_BY_SEAL_CONFIDENCE = 0.98


def canonical_json(certificate: Certificate) -> bytes:
    """Serialize a certificate exactly as it is signed."""
    return json.dumps(
        certificate.to_dict(), separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def require_canonical_segments(token: str) -> None:
    """
    Reject compact tokens whose segments are not canonical base64url.

    Decoding ignores the spare low bits of a segment's last character and
    any non-alphabet padding, so distinct strings can decode to the same
    signed bytes. Each segment must re-encode to exactly itself.

    Raises:
        ValueError: If a segment is not in canonical form.
    """
    segments = token.split(".")
    if len(segments) != 3:
        raise ValueError("Token must have exactly three segments")
    for segment in segments:
        if base64url_encode(base64url_decode(segment)) != segment:
            raise ValueError("Token segment is not canonical base64url")


class CertificateService:
    """
    Issues and checks signed certificates.

    Example:
        >>> service = CertificateService(KeyStore())
        >>> signed = service.issue(outcome, display_name="Aiko")
        >>> service.verify(signed.jws).valid
        True
    """

    def __init__(
        self,
        key_store: Optional[KeyStore] = None,
        profile_base_url: str = PROFILE_BASE_URL,
    ):
        self._keys = key_store or KeyStore()
        self._profile_base_url = profile_base_url

    @property
    def key_store(self) -> KeyStore:
        return self._keys

    def issue(
        self, outcome: VerificationOutcome, display_name: Optional[str] = None
    ) -> SignedCertificate:
        """
        Sign a certificate for an authentic outcome.

        Args:
            outcome: Classifier output. Must be AUTHENTIC with a ledger entry.
            display_name: Creator name to embed (default: the outcome's creator).

        Raises:
            CertificateIssuanceError: If the outcome is not authentic.
            ConfigurationError: If the signing key is not configured.
        """
        if outcome.status != SealStatus.AUTHENTIC:
            raise CertificateIssuanceError(
                f"Certificates are only issued for authentic outcomes (got {outcome.status.value})"
            )
        entry = outcome.ledger_entry
        if entry is None:
            raise CertificateIssuanceError("Authentic outcome has no ledger entry")

        if display_name is None and outcome.creator is not None:
            display_name = outcome.creator.display_name

        certificate = Certificate(
            seal_id=entry.seal_id,
            confidence=outcome.confidence,
            cdn_url=entry.asset.cdn_url,
            storage_path=entry.asset.storage_path,
            user_id=entry.owner_id,
            display_name=display_name,
            profile_url=get_profile_url(entry.owner_id, self._profile_base_url),
            created_at=entry.created_at,
            model_provider=entry.provenance.model_provider,
            model_name=entry.provenance.model_name,
            pipeline_mode=entry.provenance.pipeline_mode,
            revoked=entry.is_revoked,
            issued_at=datetime.now(timezone.utc).isoformat(),
        )

        token = jws.JWS(canonical_json(certificate))
        token.add_signature(self._keys.get_private_key(), None, json_encode(PROTECTED_HEADER))

        logger.info(f"Issued certificate for {truncate_seal_id(entry.seal_id)}")
        return SignedCertificate(jws=token.serialize(compact=True), certificate=certificate)

    def verify(self, token: str) -> CertificateVerification:
        """
        Check a compact token against the public key.

        Never raises for bad tokens; returns valid=False with a reason.

        Raises:
            ConfigurationError: If the public key is not configured.
        """
        key = self._keys.get_public_key()
        compact = token.strip()

        try:
            require_canonical_segments(compact)
            parsed = jws.JWS()
            parsed.deserialize(compact)
            parsed.verify(key)
            payload = parsed.payload
            data = json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
            if not isinstance(data, dict):
                raise ValueError("Certificate payload is not an object")
            certificate = Certificate.from_dict(data)
        except (JWException, ValueError, TypeError) as e:
            logger.debug(f"Certificate rejected: {type(e).__name__}: {e}")
            return CertificateVerification(valid=False, error=str(e) or type(e).__name__)

        if certificate.type != CERTIFICATE_TYPE:
            return CertificateVerification(
                valid=False, error=f"Unexpected certificate type: {certificate.type}"
            )

        return CertificateVerification(valid=True, certificate=certificate)

    def get_public_key_jwk(self) -> Dict[str, Any]:
        """Return the public key as a JWK dict for distribution."""
        return json.loads(self._keys.get_public_key().export_public())

    @staticmethod
    def public_key_cache_headers() -> Dict[str, str]:
        """HTTP headers for serving the public key."""
        return {"Cache-Control": f"public, max-age={PUBLIC_KEY_CACHE_MAX_AGE}"}


class CertificateAuthority:
    """
    Issues certificates for a seal id straight from the ledger.

    Unlike CertificateService.issue(), no image is verified: the ledger entry
    alone decides eligibility.
    """

    def __init__(self, service: CertificateService, ledger: LedgerInterface):
        self._service = service
        self._ledger = ledger

    async def issue_for_seal(self, seal_id: str) -> SignedCertificate:
        """
        Raises:
            SealNotFoundError: The seal is not registered.
            SealRevokedError: The seal has been revoked.
            SealPrivateError: The seal is private.
            ConfigurationError: The signing key is not configured.
        """
        if not seal_id:
            raise ValueError("seal_id is required")

        resolution = await self._ledger.lookup(seal_id)
        if resolution is None:
            raise SealNotFoundError(seal_id)

        entry = resolution.entry
        if entry.is_revoked:
            raise SealRevokedError(seal_id)
        if entry.is_private:
            raise SealPrivateError(seal_id)

        outcome = VerificationOutcome(
            status=SealStatus.AUTHENTIC,
            confidence=ISSUED_BY_SEAL_CONFIDENCE,
            seal_id=seal_id,
            ledger_entry=entry,
            creator=resolution.creator,
        )
        signed = self._service.issue(outcome)

        try:
            await self._ledger.record_event(
                seal_id, {"event_type": EVENT_CERT_ISSUED, "issuedAt": utc_now_iso()}
            )
        except Exception as e:
            logger.error(f"Audit write failed for {truncate_seal_id(seal_id)}: {e}")

        return signed


# =============================================================================
# Process-wide default service
# =============================================================================

_default_service: Optional[CertificateService] = None
_default_lock = threading.Lock()


def get_certificate_service() -> CertificateService:
    """Return the process-wide service backed by the environment keys."""
    global _default_service
    if _default_service is None:
        with _default_lock:
            if _default_service is None:
                _default_service = CertificateService()
    return _default_service
