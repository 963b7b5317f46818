"""
Wire schemas for the remote ports.

Responses from the watermark decoder, the similarity index and the ledger
are validated here before anything reaches the core. A response that fails
validation is treated by the callers exactly like a transport fault.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from aetherseal.types import (
    AssetLocator,
    CreatorInfo,
    GeometricHints,
    LedgerEntry,
    LicenseType,
    Provenance,
    Visibility,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Watermark decoder
# =============================================================================


class TransformsPayload(_WireModel):
    rotation_degrees: float = Field(0.0, alias="rotationDegrees")
    scale_factor: float = Field(1.0, alias="scaleFactor")

    def to_hints(self) -> GeometricHints:
        return GeometricHints(
            rotation_degrees=self.rotation_degrees, scale_factor=self.scale_factor
        )


class DecoderResponse(_WireModel):
    """Body returned by the remote watermark decoder."""

    detected: bool
    seal_id: Optional[str] = Field(None, alias="sealId")
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    transforms: Optional[TransformsPayload] = None


# =============================================================================
# Ledger records
# =============================================================================


class CreatorPayload(_WireModel):
    display_name: Optional[str] = Field(None, alias="displayName")
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")

    def to_creator(self) -> CreatorInfo:
        return CreatorInfo(display_name=self.display_name, avatar_url=self.avatar_url)


class SealRecordPayload(_WireModel):
    """A ledger entry as serialized by the resolve API and the similarity index."""

    seal_id: str = Field(alias="sealId")
    user_id: str = Field(alias="userId")
    cdn_url: str = Field(alias="cdnUrl")
    storage_path: str = Field(validation_alias=AliasChoices("storagePath", "r2Path"))
    model_provider: str = Field(alias="modelProvider")
    model_name: Optional[str] = Field(None, alias="modelName")
    pipeline_mode: str = Field(alias="pipelineMode")
    visibility: Visibility = Visibility.PUBLIC
    revoked_at: Optional[str] = Field(None, alias="revokedAt")
    created_at: str = Field(alias="createdAt")
    license_type: Optional[LicenseType] = Field(None, alias="licenseType")

    def to_entry(self, license_type: Optional[LicenseType] = None) -> LedgerEntry:
        return LedgerEntry(
            seal_id=self.seal_id,
            owner_id=self.user_id,
            asset=AssetLocator(cdn_url=self.cdn_url, storage_path=self.storage_path),
            provenance=Provenance(
                model_provider=self.model_provider,
                model_name=self.model_name,
                pipeline_mode=self.pipeline_mode,
            ),
            visibility=self.visibility,
            revoked_at=self.revoked_at,
            created_at=self.created_at,
            license_type=self.license_type or license_type,
        )


class ResolveResponse(_WireModel):
    """Body returned by POST /api/seal/resolve."""

    success: bool
    seal: Optional[SealRecordPayload] = None
    creator: Optional[CreatorPayload] = None
    license_type: Optional[LicenseType] = Field(None, alias="licenseType")


# =============================================================================
# Similarity index
# =============================================================================


class SimilarityPayload(_WireModel):
    hamming_distance: int = Field(alias="hammingDistance", ge=0, le=64)
    percentage: float = Field(ge=0.0, le=100.0)


class SimilarityResponse(_WireModel):
    """Body returned by the perceptual similarity index."""

    found: bool
    match: Optional[SealRecordPayload] = None
    similarity: Optional[SimilarityPayload] = None
    creator: Optional[CreatorPayload] = None
