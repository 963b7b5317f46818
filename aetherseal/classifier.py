"""
Aether Seal verification classifier.

Fuses extraction confidence, ledger state and fallback-match quality into
one of four outcomes:

    no identifier
      fallback match >= similarity threshold -> INCONCLUSIVE
      otherwise                              -> NOT_FOUND
    identifier present
      ledger miss
        confidence >= inconclusive threshold -> INCONCLUSIVE
        otherwise                            -> NOT_FOUND
      ledger hit
        revoked                              -> REVOKED
        confidence >= authentic threshold    -> AUTHENTIC
        otherwise                            -> INCONCLUSIVE

Thresholds are inclusive. A fallback match never reaches AUTHENTIC.

The classifier keeps the full ledger entry on the outcome. Personal fields
of private entries are dropped only when the outcome is rendered by
build_verify_response().
"""

from typing import Any, Dict, Optional

from aetherseal.config import DEFAULT_THRESHOLDS, Thresholds, get_profile_url
from aetherseal.types import (
    ExtractedSignature,
    FallbackMatch,
    LedgerResolution,
    SealStatus,
    VerificationOutcome,
)


class VerificationClassifier:
    """
    Pure mapping from extraction and ledger results to a VerificationOutcome.

    Example:
        >>> classifier = VerificationClassifier(LEGACY_THRESHOLDS)
        >>> outcome = classifier.classify(extracted, resolution=resolution)
        >>> outcome.status
        <SealStatus.AUTHENTIC: 'authentic'>
    """

    def __init__(self, thresholds: Thresholds = DEFAULT_THRESHOLDS):
        self._thresholds = thresholds

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def classify(
        self,
        extracted: ExtractedSignature,
        resolution: Optional[LedgerResolution] = None,
        fallback: Optional[FallbackMatch] = None,
    ) -> VerificationOutcome:
        """
        Classify one verification.

        Args:
            extracted: Extractor output.
            resolution: Ledger lookup for extracted.identifier (None on a miss).
            fallback: Perceptual match, consulted only when no identifier was found.
        """
        if not extracted.found:
            return self._classify_fallback(fallback)

        if resolution is None:
            if extracted.confidence >= self._thresholds.inconclusive:
                return VerificationOutcome(
                    status=SealStatus.INCONCLUSIVE,
                    confidence=extracted.confidence,
                    seal_id=extracted.identifier,
                    tier=extracted.tier,
                )
            return VerificationOutcome(status=SealStatus.NOT_FOUND, confidence=0.0)

        entry = resolution.entry

        if entry.is_revoked:
            return VerificationOutcome(
                status=SealStatus.REVOKED,
                confidence=extracted.confidence,
                seal_id=extracted.identifier,
                ledger_entry=entry,
                tier=extracted.tier,
            )

        if extracted.confidence >= self._thresholds.authentic:
            status = SealStatus.AUTHENTIC
        else:
            status = SealStatus.INCONCLUSIVE

        return VerificationOutcome(
            status=status,
            confidence=extracted.confidence,
            seal_id=extracted.identifier,
            ledger_entry=entry,
            creator=resolution.creator,
            tier=extracted.tier,
        )

    def _classify_fallback(self, fallback: Optional[FallbackMatch]) -> VerificationOutcome:
        if fallback is None or fallback.similarity < self._thresholds.similarity:
            return VerificationOutcome(status=SealStatus.NOT_FOUND, confidence=0.0)

        entry = fallback.entry
        confidence = fallback.similarity / 100.0

        # Revocation outranks every other signal, including a perceptual match.
        if entry.is_revoked:
            status = SealStatus.REVOKED
            creator = None
        else:
            status = SealStatus.INCONCLUSIVE
            creator = fallback.creator

        return VerificationOutcome(
            status=status,
            confidence=confidence,
            seal_id=entry.seal_id,
            ledger_entry=entry,
            creator=creator,
            matched_by_fallback=True,
            fallback_similarity=fallback.similarity,
            tier="fallback",
        )


def build_verify_response(
    outcome: VerificationOutcome, profile_base_url: Optional[str] = None
) -> Dict[str, Any]:
    """
    Render an outcome for an external caller.

    The metadata block (creator, asset, provenance, license) is omitted
    entirely for private entries.
    """
    metadata = None
    entry = outcome.ledger_entry

    if entry is not None and not entry.is_private:
        display_name = outcome.creator.display_name if outcome.creator else None
        license_block = None
        if entry.license_type is not None:
            license_block = {
                "type": entry.license_type.value,
                "label": entry.license_type.label,
                "description": entry.license_type.description,
            }
        metadata = {
            "sealId": entry.seal_id,
            "createdAt": entry.created_at,
            "creator": {
                "userId": entry.owner_id,
                "displayName": display_name,
                "profileUrl": get_profile_url(entry.owner_id, profile_base_url),
            },
            "asset": {
                "cdnUrl": entry.asset.cdn_url,
                "storagePath": entry.asset.storage_path,
            },
            "provenance": {
                "modelProvider": entry.provenance.model_provider,
                "modelName": entry.provenance.model_name,
                "pipelineMode": entry.provenance.pipeline_mode,
            },
            "license": license_block,
        }

    return {
        "status": outcome.status.value,
        "confidence": outcome.confidence,
        "sealId": outcome.seal_id,
        "matchedByFallback": outcome.matched_by_fallback,
        "fallbackSimilarity": outcome.fallback_similarity,
        "metadata": metadata,
    }
