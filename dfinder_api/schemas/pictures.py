from __future__ import annotations

from typing import List
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


class SimilarPicture(BaseModel):
    src_picture_id: int
    dst_picture_id: int
    distance: int = Field(..., ge=0, le=64, description="Hamming distance between fingerprints.")


class SimilarPictureListResponse(BaseModel):
    data: List[SimilarPicture]


class IndexRequest(BaseModel):
    url: str = Field(..., min_length=1, description="http(s) location of the original image.")

    @field_validator("url")
    @classmethod
    def _remote_only(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an http(s) URL")
        return value


class IndexResponse(BaseModel):
    picture_id: int
    hash: str = Field(..., description="64-bit perceptual hash, hex encoded.")
    neighbours: int = Field(..., ge=0, description="Near-duplicates linked by this call.")
