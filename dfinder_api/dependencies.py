from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from dfinder_worker.finder import DuplicateFinder
from dfinder_worker.images import SourceFetcher

from .config import settings
from .db import get_db, get_session_factory

api_key_header = APIKeyHeader(name='X-API-Key', auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_duplicate_finder() -> AsyncIterator[DuplicateFinder]:
    # request bodies are untrusted: no local file reads
    finder = DuplicateFinder(get_session_factory(), fetcher=SourceFetcher(allow_local=False))
    try:
        yield finder
    finally:
        await finder.close()


async def require_api_key(api_key: Optional[str] = Depends(api_key_header)) -> Optional[str]:
    """Simple API key guard for non-health routes."""
    if settings.api_keys:
        if api_key is None or api_key not in settings.api_keys:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Unauthorized')
    return api_key
