"""
DFINDER Perceptual Hash (pHash) Module
=======================================
Computes 64-bit perceptual fingerprints for near-duplicate detection.

The fingerprint is taken from decoded pixel data only, so the same picture
re-encoded as JPEG, PNG or WEBP yields the same (or a very close) value.
"""
from __future__ import annotations

import io

import imagehash
from PIL import Image, UnidentifiedImageError

from ..errors import DecodeError, EmptySourceError

# 8x8 DCT low frequencies = 64 bits
HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE
HASH_MASK = (1 << HASH_BITS) - 1


def hamming_distance(hash1: int, hash2: int) -> int:
    """
    Number of differing bits between two 64-bit fingerprints.

    - 0: Identical
    - 1-3: Near-duplicate (resized, recompressed)
    - 10+: Different images
    """
    return ((hash1 ^ hash2) & HASH_MASK).bit_count()


class ImageHasher:
    """
    Computes perceptual hashes for raw image bytes.

    Usage:
        hasher = ImageHasher()
        fingerprint = hasher.hash(data)
    """

    def __init__(self, hash_size: int = HASH_SIZE):
        self.hash_size = hash_size

    def decode(self, data: bytes) -> Image.Image:
        """Decode bytes in any codec Pillow understands."""
        if not data:
            raise EmptySourceError("image source is empty")

        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise DecodeError(f"not a decodable image: {e}") from e
        except (OSError, SyntaxError, ValueError) as e:
            # truncated or corrupt payload with a valid header
            raise DecodeError(f"corrupt image data: {e}") from e

        return img

    def hash(self, data: bytes) -> int:
        """Return the pHash of ``data`` as an unsigned integer."""
        img = self.decode(data)
        try:
            digest = imagehash.phash(img, hash_size=self.hash_size)
        finally:
            img.close()

        return int(str(digest), 16)


def compute_fingerprint(data: bytes) -> int:
    """Convenience function to hash bytes with the default hasher."""
    return ImageHasher().hash(data)
