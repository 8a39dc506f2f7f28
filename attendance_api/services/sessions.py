import datetime
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from attendance_api.exceptions import ConcurrentUpdateError
from attendance_api.models.attendance import AttendanceSession
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionKey:
    faculty_id: int
    subject: str
    section: str
    session_type: str
    date: datetime.date


class SessionStore:
    """Persistence for attendance sessions.

    Writes are atomic per session: the row carries a version column, so a
    save based on a stale read fails instead of overwriting.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: SessionKey) -> Optional[AttendanceSession]:
        query = select(AttendanceSession).where(
            AttendanceSession.faculty_id == key.faculty_id,
            AttendanceSession.subject == key.subject,
            AttendanceSession.section == key.section,
            AttendanceSession.session_type == key.session_type,
            AttendanceSession.date == key.date,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(
        self, session_id: int, refresh: bool = False
    ) -> Optional[AttendanceSession]:
        query = select(AttendanceSession).where(AttendanceSession.id == session_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, session: AttendanceSession) -> AttendanceSession:
        """
        Inserts a new session with its records.

        Raises:
            ConcurrentUpdateError: another writer created the same natural key first.
        """
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info(f"Session natural key already taken: {exc.orig}")
            raise ConcurrentUpdateError("Attendance session already exists") from exc
        return session

    async def save(self, session: AttendanceSession) -> AttendanceSession:
        """
        Commits record and counter changes in one transaction.

        Raises:
            ConcurrentUpdateError: the session changed since it was read, or a
                concurrent writer appended the same student.
        """
        session_id = session.id
        try:
            await self.db.commit()
        except (StaleDataError, IntegrityError) as exc:
            await self.db.rollback()
            logger.warning(f"Stale write on attendance session {session_id}: {exc}")
            raise ConcurrentUpdateError() from exc
        return session

    async def list_for_owner(
        self,
        faculty_id: int,
        subject: Optional[str] = None,
        section: Optional[str] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
        limit: int = 100,
    ) -> List[AttendanceSession]:
        query = select(AttendanceSession).where(
            AttendanceSession.faculty_id == faculty_id
        )
        if subject:
            query = query.where(AttendanceSession.subject == subject)
        if section:
            query = query.where(AttendanceSession.section == section)
        if start_date:
            query = query.where(AttendanceSession.date >= start_date)
        if end_date:
            query = query.where(AttendanceSession.date <= end_date)

        query = query.order_by(
            AttendanceSession.date.desc(), AttendanceSession.created_at.desc()
        ).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
