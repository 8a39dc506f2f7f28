from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_api.database import get_db
from attendance_api.services.attendance import AttendanceService
from attendance_api.services.embedding import EmbeddingClient
from attendance_api.services.rate_limiter import SessionRateLimiter


# Both are built once per process and live on app.state
def get_rate_limiter(request: Request) -> SessionRateLimiter:
    return request.app.state.rate_limiter


def get_embedding_client(request: Request) -> Optional[EmbeddingClient]:
    return getattr(request.app.state, "embedding_client", None)


async def get_attendance_service(
    db: AsyncSession = Depends(get_db),
    rate_limiter: SessionRateLimiter = Depends(get_rate_limiter),
    embedding: Optional[EmbeddingClient] = Depends(get_embedding_client),
) -> AttendanceService:
    return AttendanceService(db, rate_limiter, embedding)
