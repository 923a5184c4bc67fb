from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..dependencies import get_db_session
from ..schemas.health import HealthResponse, VersionResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db_session)) -> HealthResponse:
    """Basic liveness and DB connectivity check."""
    db_state = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Health check DB query failed: {e}")
        db_state = "error"
    return HealthResponse(
        status="ok" if db_state == "ok" else "degraded",
        db=db_state,
        timestamp=datetime.now(timezone.utc),
        service="dfinder",
        version=settings.api_version,
    )


@router.get("/version", response_model=VersionResponse)
async def version() -> VersionResponse:
    """Return service version information."""
    return VersionResponse(service="dfinder", version=settings.api_version)
