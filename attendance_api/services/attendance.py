import datetime
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from attendance_api.config import settings
from attendance_api.exceptions import (
    NotFound,
    OutcomeKind,
    RateLimited,
    Unauthorized,
    ValidationError,
)
from attendance_api.models.attendance import AttendanceSession
from attendance_api.services.embedding import EmbeddingClient
from attendance_api.services.rate_limiter import SessionRateLimiter
from attendance_api.services.reconciler import (
    Clock,
    MarkOutcome,
    SessionOutcome,
    SessionReconciler,
    local_now,
)
from attendance_api.services.recognition import find_best_match
from attendance_api.services.roster import RosterService
from attendance_api.services.sessions import SessionKey, SessionStore
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


def raise_if_no_face_data(
    face_descriptor: Optional[Sequence[float]], face_image_base64: Optional[str]
) -> None:
    if not face_descriptor and not face_image_base64:
        raise ValidationError(
            "Face data is required",
            hint="Please provide either face_descriptor or face_image_base64",
        )


class AttendanceService:
    def __init__(
        self,
        db: AsyncSession,
        rate_limiter: SessionRateLimiter,
        embedding: Optional[EmbeddingClient] = None,
        clock: Clock = local_now,
    ):
        self.db = db
        self.store = SessionStore(db)
        self.roster = RosterService(db)
        self.reconciler = SessionReconciler(self.store, self.roster, clock=clock)
        self.rate_limiter = rate_limiter
        self.embedding = embedding

    async def start_session(
        self,
        faculty_id: int,
        subject: str,
        section: str,
        session_type: str,
        hours: Sequence[str],
    ) -> SessionOutcome:
        decision = await self.rate_limiter.check(faculty_id, subject, section)
        if not decision.allowed:
            raise RateLimited(decision.retry_after)

        key = SessionKey(
            faculty_id=faculty_id,
            subject=subject,
            section=section,
            session_type=session_type,
            date=self.reconciler.today(),
        )
        return await self.reconciler.create_or_get(key, hours)

    async def get_owned_session(
        self, faculty_id: int, session_id: int
    ) -> AttendanceSession:
        session = await self.store.get_by_id(session_id)
        if session is None:
            raise NotFound("Attendance session not found")
        if session.faculty_id != faculty_id:
            logger.warning(
                f"Faculty {faculty_id} tried to access session {session_id} "
                f"owned by {session.faculty_id}"
            )
            raise Unauthorized("Unauthorized to access this session")
        return session

    async def resolve_descriptor(
        self,
        face_descriptor: Optional[Sequence[float]],
        face_image_base64: Optional[str],
    ) -> List[float]:
        if face_descriptor:
            return list(face_descriptor)

        if face_image_base64:
            if self.embedding is None:
                raise ValidationError(
                    "Server-side face processing is unavailable",
                    hint="Please provide a face_descriptor instead",
                )
            return await self.embedding.detect(face_image_base64)

        raise_if_no_face_data(face_descriptor, face_image_base64)

    async def mark_attendance(
        self,
        faculty_id: int,
        session_id: int,
        face_descriptor: Optional[Sequence[float]] = None,
        face_image_base64: Optional[str] = None,
    ) -> MarkOutcome:
        raise_if_no_face_data(face_descriptor, face_image_base64)
        session = await self.get_owned_session(faculty_id, session_id)
        descriptor = await self.resolve_descriptor(face_descriptor, face_image_base64)

        # Match against the live roster, the session snapshot may be stale
        enrolled = await self.roster.find(
            session.subject, session.section, session.faculty_id
        )
        match = find_best_match(descriptor, enrolled)
        if match is None:
            return MarkOutcome(OutcomeKind.NO_MATCH, session)

        return await self.reconciler.mark_present(session, match)

    async def list_reports(
        self,
        faculty_id: int,
        subject: Optional[str] = None,
        section: Optional[str] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> List[AttendanceSession]:
        return await self.store.list_for_owner(
            faculty_id,
            subject=subject,
            section=section,
            start_date=start_date,
            end_date=end_date,
            limit=settings.REPORTS_LIMIT,
        )
