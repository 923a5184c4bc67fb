from __future__ import annotations

import pytest

from dfinder_worker.errors import DecodeError, EmptySourceError
from dfinder_worker.images.phash import HASH_BITS, ImageHasher, hamming_distance

from .conftest import block_image, encode, image_bytes


def test_hash_is_deterministic():
    data = image_bytes(1, "JPEG", quality=90)
    hasher = ImageHasher()
    assert hasher.hash(data) == hasher.hash(data)


def test_hash_fits_in_64_bits():
    fingerprint = ImageHasher().hash(image_bytes(2))
    assert 0 <= fingerprint < (1 << HASH_BITS)


def test_lossless_codecs_hash_identically():
    img = block_image(3)
    hasher = ImageHasher()
    assert hasher.hash(encode(img, "PNG")) == hasher.hash(encode(img, "BMP"))


def test_recompressed_jpeg_is_near_duplicate():
    img = block_image(4)
    hasher = ImageHasher()
    png = hasher.hash(encode(img, "PNG"))
    jpeg = hasher.hash(encode(img, "JPEG", quality=95))
    assert hamming_distance(png, jpeg) <= 6


def test_resized_copy_is_near_duplicate():
    img = block_image(5)
    hasher = ImageHasher()
    original = hasher.hash(encode(img))
    smaller = hasher.hash(encode(img.resize((192, 192))))
    assert hamming_distance(original, smaller) <= 6


def test_unrelated_images_are_far_apart():
    hasher = ImageHasher()
    a = hasher.hash(image_bytes(10))
    b = hasher.hash(image_bytes(11))
    assert hamming_distance(a, b) > 3


def test_empty_input_raises_empty_source():
    with pytest.raises(EmptySourceError):
        ImageHasher().hash(b"")


def test_garbage_raises_decode_error():
    with pytest.raises(DecodeError):
        ImageHasher().hash(b"definitely not an image")


def test_truncated_image_raises_decode_error():
    data = image_bytes(6, "PNG")
    with pytest.raises(DecodeError):
        ImageHasher().hash(data[: len(data) // 2])


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (0, 0, 0),
        (0b1011, 0b0001, 2),
        (0, (1 << 64) - 1, 64),
        (0xF0F0, 0x0F0F, 16),
    ],
)
def test_hamming_distance(a, b, expected):
    assert hamming_distance(a, b) == expected
