"""
DFINDER Pictures API Router
===========================
- List near-duplicates of a picture
- Index a picture synchronously (upload handlers)
- Hide a reviewed pair
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from dfinder_worker.errors import (
    DecodeError,
    FetchError,
    PersistenceError,
    ValidationError,
)
from dfinder_worker.finder import DuplicateFinder
from dfinder_worker.store import MAX_PICTURE_ID

from ..config import settings
from ..dependencies import get_duplicate_finder, require_api_key
from ..schemas.pictures import (
    IndexRequest,
    IndexResponse,
    SimilarPicture,
    SimilarPictureListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/pictures",
    tags=["pictures"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/{picture_id}/similar", response_model=SimilarPictureListResponse)
async def list_similar(
    picture_id: int = Path(..., gt=0, le=MAX_PICTURE_ID),
    limit: Optional[int] = Query(
        None,
        ge=1,
        description="Maximum rows to return.",
    ),
    finder: DuplicateFinder = Depends(get_duplicate_finder),
) -> SimilarPictureListResponse:
    if limit is None:
        limit = settings.default_similar_limit
    limit = min(limit, settings.max_similar_limit)

    try:
        edges = await finder.edges_of(picture_id, limit=limit)
    except PersistenceError as e:
        logger.error(f"Failed to list similar pictures of {picture_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable")

    return SimilarPictureListResponse(
        data=[
            SimilarPicture(
                src_picture_id=edge.src_picture_id,
                dst_picture_id=edge.dst_picture_id,
                distance=edge.distance,
            )
            for edge in edges
        ]
    )


@router.post("/{picture_id}/index", response_model=IndexResponse)
async def index_picture(
    body: IndexRequest,
    picture_id: int = Path(..., gt=0, le=MAX_PICTURE_ID),
    finder: DuplicateFinder = Depends(get_duplicate_finder),
) -> IndexResponse:
    try:
        result = await finder.index(picture_id, body.url)
    except (DecodeError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except FetchError as e:
        logger.warning(f"Failed to fetch source of picture {picture_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Source unavailable")
    except PersistenceError as e:
        logger.error(f"Failed to index picture {picture_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable")

    return IndexResponse(
        picture_id=result.picture_id,
        hash=f"{result.hash:016x}",
        neighbours=result.neighbours,
    )


@router.post(
    "/{picture_id}/similar/{other_id}/hide",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def hide_similar(
    picture_id: int = Path(..., gt=0, le=MAX_PICTURE_ID),
    other_id: int = Path(..., gt=0, le=MAX_PICTURE_ID),
    finder: DuplicateFinder = Depends(get_duplicate_finder),
) -> Response:
    try:
        touched = await finder.hide_similar(picture_id, other_id)
    except PersistenceError as e:
        logger.error(f"Failed to hide pair {picture_id}/{other_id}: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable")

    if not touched:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pair not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
