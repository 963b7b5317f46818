"""
Aether Seal perceptual hashing.

Average-hash fingerprints used to find registered images that lost their
watermark. The hash is tolerant of recompression and light resizing: small
perturbations shift the mean only slightly, so bit flips stay rare.
"""

import hashlib
import io
import logging

from PIL import Image

from aetherseal.types import PerceptualFingerprint

logger = logging.getLogger(__name__)

HASH_GRID = 8
HASH_BITS = HASH_GRID * HASH_GRID


class PerceptualHasher:
    """
    Computes 64-bit average-hash fingerprints.

    Example:
        >>> hasher = PerceptualHasher()
        >>> fingerprint = hasher.hash(image_bytes)
        >>> fingerprint.hex
        'ffe7c3c3c3e7ff00'
    """

    def hash(self, image_bytes: bytes) -> PerceptualFingerprint:
        """
        Fingerprint an image.

        Never raises. If the bytes cannot be decoded the fingerprint falls back
        to the first 8 bytes of their SHA-256 digest and is marked degraded.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                gray = img.convert("L").resize(
                    (HASH_GRID, HASH_GRID), Image.Resampling.LANCZOS
                )
                pixels = gray.tobytes()
        except Exception as e:
            logger.warning(f"Image decode failed, using degraded digest fingerprint: {e}")
            return digest_fingerprint(image_bytes)

        return PerceptualFingerprint(value=_average_hash_bits(pixels))


def _average_hash_bits(pixels: bytes) -> int:
    mean = sum(pixels) / len(pixels)
    value = 0
    for pixel in pixels:
        value = (value << 1) | (1 if pixel >= mean else 0)
    return value


def digest_fingerprint(data: bytes) -> PerceptualFingerprint:
    """Degraded-mode fingerprint: first 8 bytes of SHA-256 of the raw bytes."""
    digest = hashlib.sha256(data).digest()
    return PerceptualFingerprint(value=int.from_bytes(digest[:8], "big"), degraded=True)


def hamming_distance(a: PerceptualFingerprint, b: PerceptualFingerprint) -> int:
    """Number of differing bits between two fingerprints."""
    return bin(a.value ^ b.value).count("1")


def similarity_percentage(distance: int) -> float:
    """Similarity in percent for a Hamming distance over 64 bits."""
    if not 0 <= distance <= HASH_BITS:
        raise ValueError(f"Hamming distance must be between 0 and {HASH_BITS}")
    return 100.0 * (1 - distance / HASH_BITS)
