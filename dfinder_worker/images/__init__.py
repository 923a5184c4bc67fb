"""
DFINDER Image Processing
========================

Modules:
- phash: 64-bit perceptual fingerprints and Hamming distance
- fetch: source location to bytes (http, file)
"""

from .fetch import SourceFetcher
from .phash import (
    HASH_BITS,
    ImageHasher,
    compute_fingerprint,
    hamming_distance,
)

__all__ = [
    "HASH_BITS",
    "ImageHasher",
    "SourceFetcher",
    "compute_fingerprint",
    "hamming_distance",
]
