from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timeline_summary.database import async_session_factory
from timeline_summary.summaries.pipeline import PipelineContext, default_context

security = HTTPBearer(auto_error=False)

_context: PipelineContext | None = None


async def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """The caller's Salesforce access token, reused for store calls and the callback."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return credentials.credentials


def get_pipeline_context() -> PipelineContext:
    global _context
    if _context is None:
        _context = default_context()
    return _context


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request (background runs)."""
    return async_session_factory
