"""
Unit tests for the verification classifier and response rendering.
"""

import pytest

from aetherseal.classifier import VerificationClassifier, build_verify_response
from aetherseal.config import LEGACY_THRESHOLDS, Thresholds
from aetherseal.types import (
    CreatorInfo,
    ExtractedSignature,
    FallbackMatch,
    LedgerResolution,
    SealStatus,
    Visibility,
)

from conftest import SEAL_ID, make_entry

REVOKED_AT = "2026-04-01T00:00:00+00:00"


def extracted(confidence: float, identifier: str = SEAL_ID) -> ExtractedSignature:
    return ExtractedSignature(identifier=identifier, confidence=confidence, tier="legacy")


def resolution(**kwargs) -> LedgerResolution:
    return LedgerResolution(entry=make_entry(**kwargs), creator=CreatorInfo(display_name="Aiko"))


def fallback(similarity: float, **kwargs) -> FallbackMatch:
    distance = round((1 - similarity / 100) * 64)
    return FallbackMatch(
        entry=make_entry(**kwargs),
        similarity=similarity,
        hamming_distance=distance,
        creator=CreatorInfo(display_name="Aiko"),
    )


@pytest.fixture
def classifier() -> VerificationClassifier:
    return VerificationClassifier()


class TestLedgerHit:
    """Identifier present and registered."""

    def test_authentic_at_threshold(self, classifier):
        """Confidence equal to the authentic threshold is authentic."""
        outcome = classifier.classify(extracted(0.75), resolution())

        assert outcome.status == SealStatus.AUTHENTIC
        assert outcome.seal_id == SEAL_ID
        assert outcome.creator.display_name == "Aiko"
        assert outcome.tier == "legacy"

    def test_inconclusive_below_threshold(self, classifier):
        outcome = classifier.classify(extracted(0.7499), resolution())
        assert outcome.status == SealStatus.INCONCLUSIVE
        assert outcome.ledger_entry is not None

    def test_legacy_thresholds(self):
        classifier = VerificationClassifier(LEGACY_THRESHOLDS)
        assert classifier.classify(extracted(0.80), resolution()).status == SealStatus.INCONCLUSIVE
        assert classifier.classify(extracted(0.85), resolution()).status == SealStatus.AUTHENTIC

    @pytest.mark.parametrize("confidence", [0.0, 0.5, 0.98, 1.0])
    def test_revocation_outranks_confidence(self, classifier, confidence):
        """A revoked entry is REVOKED whatever the confidence."""
        outcome = classifier.classify(extracted(confidence), resolution(revoked_at=REVOKED_AT))

        assert outcome.status == SealStatus.REVOKED
        assert outcome.confidence == confidence
        assert outcome.seal_id == SEAL_ID
        assert outcome.creator is None

    def test_private_entry_classified_normally(self, classifier):
        """Visibility affects rendering, not the status."""
        outcome = classifier.classify(
            extracted(0.98), resolution(visibility=Visibility.PRIVATE)
        )
        assert outcome.status == SealStatus.AUTHENTIC


class TestLedgerMiss:
    """Identifier present but not registered."""

    def test_inconclusive_at_threshold(self, classifier):
        outcome = classifier.classify(extracted(0.40))

        assert outcome.status == SealStatus.INCONCLUSIVE
        assert outcome.seal_id == SEAL_ID
        assert outcome.ledger_entry is None

    def test_not_found_below_threshold(self, classifier):
        outcome = classifier.classify(extracted(0.39))

        assert outcome.status == SealStatus.NOT_FOUND
        assert outcome.confidence == 0.0
        assert outcome.seal_id is None

    def test_high_confidence_unregistered_is_never_authentic(self, classifier):
        assert classifier.classify(extracted(1.0)).status == SealStatus.INCONCLUSIVE


class TestFallback:
    """No identifier; perceptual match only."""

    def test_no_match(self, classifier):
        outcome = classifier.classify(ExtractedSignature.missing())

        assert outcome.status == SealStatus.NOT_FOUND
        assert outcome.confidence == 0.0
        assert outcome.matched_by_fallback is False

    def test_match_is_inconclusive(self, classifier):
        outcome = classifier.classify(ExtractedSignature.missing(), fallback=fallback(90.625))

        assert outcome.status == SealStatus.INCONCLUSIVE
        assert outcome.matched_by_fallback is True
        assert outcome.fallback_similarity == 90.625
        assert outcome.confidence == pytest.approx(0.90625)
        assert outcome.seal_id == SEAL_ID
        assert outcome.tier == "fallback"

    def test_perfect_match_never_authentic(self, classifier):
        """A 100% perceptual match is still only inconclusive."""
        outcome = classifier.classify(ExtractedSignature.missing(), fallback=fallback(100.0))
        assert outcome.status == SealStatus.INCONCLUSIVE

    def test_perfect_match_never_authentic_with_zero_thresholds(self):
        classifier = VerificationClassifier(Thresholds(authentic=0.0, inconclusive=0.0, similarity=0.0))
        outcome = classifier.classify(ExtractedSignature.missing(), fallback=fallback(100.0))
        assert outcome.status != SealStatus.AUTHENTIC

    def test_below_similarity_threshold(self, classifier):
        outcome = classifier.classify(ExtractedSignature.missing(), fallback=fallback(84.375))
        assert outcome.status == SealStatus.NOT_FOUND

    def test_revoked_match(self, classifier):
        outcome = classifier.classify(
            ExtractedSignature.missing(), fallback=fallback(100.0, revoked_at=REVOKED_AT)
        )

        assert outcome.status == SealStatus.REVOKED
        assert outcome.creator is None

    def test_fallback_ignored_when_identifier_present(self, classifier):
        outcome = classifier.classify(extracted(0.98), resolution(), fallback=fallback(100.0))
        assert outcome.matched_by_fallback is False
        assert outcome.status == SealStatus.AUTHENTIC


class TestThresholds:
    """Tests for threshold validation."""

    def test_defaults(self):
        t = Thresholds()
        assert (t.authentic, t.inconclusive, t.similarity) == (0.75, 0.40, 85.0)

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            Thresholds(authentic=0.3, inconclusive=0.5)

    def test_similarity_out_of_range(self):
        with pytest.raises(ValueError):
            Thresholds(similarity=120.0)


class TestBuildVerifyResponse:
    """Tests for the rendered response."""

    def test_public_entry_metadata(self, classifier):
        outcome = classifier.classify(extracted(0.98), resolution())
        body = build_verify_response(outcome, "https://market.example.com/")

        assert body["status"] == "authentic"
        assert body["sealId"] == SEAL_ID
        assert body["matchedByFallback"] is False
        assert body["fallbackSimilarity"] is None

        metadata = body["metadata"]
        assert metadata["creator"] == {
            "userId": "u_123",
            "displayName": "Aiko",
            "profileUrl": "https://market.example.com/profile/u_123",
        }
        assert metadata["asset"]["cdnUrl"].startswith("https://cdn.example.com/")
        assert metadata["provenance"]["modelProvider"] == "fal"
        assert metadata["license"]["type"] == "cc_by"
        assert metadata["license"]["label"] == "CC BY 4.0"

    def test_private_entry_redacted(self, classifier):
        """Private entries expose status and confidence only."""
        outcome = classifier.classify(extracted(0.98), resolution(visibility=Visibility.PRIVATE))
        body = build_verify_response(outcome)

        assert body["status"] == "authentic"
        assert body["confidence"] == 0.98
        assert body["metadata"] is None

    def test_unlisted_entry_not_redacted(self, classifier):
        outcome = classifier.classify(extracted(0.98), resolution(visibility=Visibility.UNLISTED))
        assert build_verify_response(outcome)["metadata"] is not None

    def test_no_license(self, classifier):
        outcome = classifier.classify(extracted(0.98), resolution(license_type=None))
        assert build_verify_response(outcome)["metadata"]["license"] is None

    def test_not_found_has_no_metadata(self, classifier):
        body = build_verify_response(classifier.classify(ExtractedSignature.missing()))

        assert body == {
            "status": "not_found",
            "confidence": 0.0,
            "sealId": None,
            "matchedByFallback": False,
            "fallbackSimilarity": None,
            "metadata": None,
        }
