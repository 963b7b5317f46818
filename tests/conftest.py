"""
Shared pytest fixtures for Aether Seal tests.
"""

import io
import json
import struct
import zlib
from typing import Optional

import pytest
from PIL import Image, ImageDraw

from aetherseal import generate_identity, KeyPair, KeyStore
from aetherseal.certificate import CertificateService
from aetherseal.decoder import WatermarkDecoderInterface
from aetherseal.extract import EXIF_IMAGE_DESCRIPTION, compute_legacy_tag
from aetherseal.ledger import MemoryLedger
from aetherseal.index import MemorySimilarityIndex
from aetherseal.types import (
    AssetLocator,
    CreatorInfo,
    LedgerEntry,
    LicenseType,
    Provenance,
    Visibility,
)

EMBED_KEY = "test-embed-key"
SEAL_ID = "q83vEjRWeJCrze8SNFZ4kA"


class StaticDecoder(WatermarkDecoderInterface):
    """Decoder returning a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = 0

    async def decode(self, image_bytes):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


def make_image(
    size: int = 256,
    cells: int = 8,
    invert: bool = False,
    fmt: str = "PNG",
    quality: int = 95,
    description: Optional[str] = None,
) -> bytes:
    """Render a checkerboard aligned to the 8x8 hash grid."""
    img = Image.new("RGB", (size, size), "white")
    draw = ImageDraw.Draw(img)
    step = size // cells
    for row in range(cells):
        for col in range(cells):
            dark = (row + col) % 2 == 0
            if invert:
                dark = not dark
            if dark:
                draw.rectangle(
                    [col * step, row * step, (col + 1) * step - 1, (row + 1) * step - 1],
                    fill="black",
                )

    buf = io.BytesIO()
    kwargs = {}
    if fmt == "JPEG":
        kwargs["quality"] = quality
    if description is not None:
        exif = Image.Exif()
        exif[EXIF_IMAGE_DESCRIPTION] = description
        kwargs["exif"] = exif.tobytes()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def make_sealed_image(
    seal_id: str = SEAL_ID,
    embed_key: str = EMBED_KEY,
    size: int = 256,
    signed_size: Optional[int] = None,
    sig: Optional[str] = None,
    version: Optional[int] = None,
) -> bytes:
    """JPEG carrying a legacy seal record bound to signed_size (default: size)."""
    bound = signed_size or size
    record = {
        "owm_seal_id": seal_id,
        "owm_seal_sig": sig if sig is not None else compute_legacy_tag(embed_key, seal_id, bound, bound),
    }
    if version is not None:
        record["owm_seal_version"] = version
    return make_image(size=size, fmt="JPEG", description=json.dumps(record))


def make_png_header(width: int, height: int) -> bytes:
    """PNG that declares the given dimensions but carries no pixel data."""

    def chunk(cid: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + cid + data + struct.pack(">I", zlib.crc32(cid + data))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"") + chunk(b"IEND", b"")


def make_entry(
    seal_id: str = SEAL_ID,
    visibility: Visibility = Visibility.PUBLIC,
    revoked_at: Optional[str] = None,
    license_type: Optional[LicenseType] = LicenseType.CC_BY,
) -> LedgerEntry:
    return LedgerEntry(
        seal_id=seal_id,
        owner_id="u_123",
        asset=AssetLocator(
            cdn_url=f"https://cdn.example.com/{seal_id}.png",
            storage_path=f"seals/2026/{seal_id}.png",
        ),
        provenance=Provenance(
            model_provider="fal",
            model_name="flux-dev",
            pipeline_mode="txt2img",
        ),
        created_at="2026-03-01T12:00:00+00:00",
        visibility=visibility,
        revoked_at=revoked_at,
        license_type=license_type,
    )


@pytest.fixture
def keypair() -> KeyPair:
    """Generate a fresh keypair for testing."""
    return generate_identity()


@pytest.fixture
def key_store(keypair: KeyPair) -> KeyStore:
    """KeyStore loaded from explicit JWK values."""
    return KeyStore(
        environ={},
        private_key=keypair.private_key_jwk,
        public_key=keypair.public_key_jwk,
    )


@pytest.fixture
def certificate_service(key_store: KeyStore) -> CertificateService:
    return CertificateService(key_store, profile_base_url="https://market.example.com")


@pytest.fixture
def entry() -> LedgerEntry:
    """A public, live ledger entry."""
    return make_entry()


@pytest.fixture
def creator() -> CreatorInfo:
    return CreatorInfo(display_name="Aiko", avatar_url="https://cdn.example.com/a.png")


@pytest.fixture
def memory_ledger() -> MemoryLedger:
    """Empty in-memory ledger."""
    return MemoryLedger()


@pytest.fixture
def memory_index() -> MemorySimilarityIndex:
    """Empty in-memory similarity index."""
    return MemorySimilarityIndex()
