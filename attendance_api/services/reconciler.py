import datetime
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from attendance_api.config import settings
from attendance_api.exceptions import (
    ConcurrentUpdateError,
    InconsistentEnrollment,
    NotFound,
    OutcomeKind,
)
from attendance_api.models.attendance import AttendanceRecord, AttendanceSession
from attendance_api.services.recognition import MatchResult
from attendance_api.services.roster import EnrolledStudent, RosterService
from attendance_api.services.sessions import SessionKey, SessionStore
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime.datetime]


def local_now() -> datetime.datetime:
    return datetime.datetime.now().astimezone()


@dataclass
class SessionOutcome:
    kind: OutcomeKind
    session: AttendanceSession
    # Roster used to build a fresh session; empty when the session already existed
    roster: List[EnrolledStudent]


@dataclass
class MarkOutcome:
    kind: OutcomeKind
    session: AttendanceSession
    # Both unset for a no_match outcome
    record: Optional[AttendanceRecord] = None
    match: Optional[MatchResult] = None
    added_to_session: bool = False


def clamp_confidence(value: float) -> float:
    return min(1.0, max(0.0, value))


def recount(session: AttendanceSession) -> None:
    """Re-derives the counters from the record list."""
    total = len(session.records)
    present = sum(1 for record in session.records if record.is_present)
    session.total_students = total
    session.present_students = present
    session.absent_students = total - present


def counters_consistent(session: AttendanceSession) -> bool:
    return (
        session.present_students + session.absent_students
        == session.total_students
        == len(session.records)
    )


def find_record(
    session: AttendanceSession, student_id: int
) -> Optional[AttendanceRecord]:
    for record in session.records:
        if record.student_id == student_id:
            return record
    return None


def build_record(student: EnrolledStudent, now: datetime.datetime) -> AttendanceRecord:
    return AttendanceRecord(
        student_id=student.id,
        student_name=student.name,
        roll_number=student.roll_number,
        is_present=False,
        marked_at=now,
    )


def snapshot_session(
    key: SessionKey,
    hours: Sequence[str],
    roster: Sequence[EnrolledStudent],
    now: datetime.datetime,
) -> AttendanceSession:
    session = AttendanceSession(
        faculty_id=key.faculty_id,
        subject=key.subject,
        section=key.section,
        session_type=key.session_type,
        hours=list(hours),
        date=key.date,
        records=[build_record(student, now) for student in roster],
    )
    recount(session)
    return session


def mark_record_present(
    session: AttendanceSession,
    record: AttendanceRecord,
    confidence: float,
    now: datetime.datetime,
) -> bool:
    """Returns False when the record was already present (no mutation)."""
    if record.is_present:
        return False

    record.is_present = True
    record.marked_at = now
    record.confidence = clamp_confidence(confidence)
    recount(session)
    return True


class SessionReconciler:
    """
    State machine of an attendance session.

    Sessions are created once per natural key and mutated only by marking
    students present. A matched student missing from the snapshot is admitted
    if the live roster confirms the enrollment.
    """

    def __init__(
        self,
        store: SessionStore,
        roster: RosterService,
        clock: Clock = local_now,
        max_retries: Optional[int] = None,
    ):
        self.store = store
        self.roster = roster
        self.clock = clock
        self.max_retries = (
            settings.MARK_MAX_RETRIES if max_retries is None else max_retries
        )

    def today(self) -> datetime.date:
        return self.clock().date()

    async def create_or_get(self, key: SessionKey, hours: Sequence[str]) -> SessionOutcome:
        existing = await self.store.get(key)
        if existing is not None:
            logger.info(f"Attendance session already exists for {key}: {existing.id}")
            return SessionOutcome(OutcomeKind.ALREADY_EXISTS, existing, [])

        roster = await self.roster.find(key.subject, key.section, key.faculty_id)
        if not roster:
            raise NotFound(
                "No students enrolled in this subject/section",
                hint="Please register students for this subject/section first",
            )

        session = snapshot_session(key, hours, roster, self.clock())
        try:
            await self.store.create(session)
        except ConcurrentUpdateError:
            existing = await self.store.get(key)
            if existing is None:
                raise
            return SessionOutcome(OutcomeKind.ALREADY_EXISTS, existing, [])

        logger.info(
            f"Attendance session {session.id} started with {session.total_students} students"
        )
        return SessionOutcome(OutcomeKind.CREATED, session, roster)

    async def mark_present(
        self, session: AttendanceSession, match: MatchResult
    ) -> MarkOutcome:
        # A failed save expires the instance, so keep the id around
        session_id = session.id
        attempt = 0
        while True:
            try:
                return await self._apply_mark(session, match)
            except ConcurrentUpdateError:
                attempt += 1
                if attempt > self.max_retries:
                    raise
                logger.info(
                    f"Retrying mark on session {session_id} (attempt {attempt})"
                )
                refreshed = await self.store.get_by_id(session_id, refresh=True)
                if refreshed is None:
                    raise NotFound("Attendance session not found")
                session = refreshed

    async def _apply_mark(
        self, session: AttendanceSession, match: MatchResult
    ) -> MarkOutcome:
        now = self.clock()
        student = match.student
        added = False

        record = find_record(session, student.id)
        if record is None:
            logger.info(
                f"Student {student.id} not in session {session.id} records, "
                "refreshing enrolled students"
            )
            live_roster = await self.roster.find(
                session.subject, session.section, session.faculty_id
            )
            enrolled = next((s for s in live_roster if s.id == student.id), None)
            if enrolled is None:
                raise InconsistentEnrollment(student.id)

            record = build_record(enrolled, now)
            session.records.append(record)
            recount(session)
            added = True

        if not mark_record_present(session, record, match.confidence, now):
            return MarkOutcome(OutcomeKind.ALREADY_MARKED, session, record, match)

        # Append and mark land in the same versioned write
        await self.store.save(session)
        logger.info(
            f"Marked {student.name} present in session {session.id} "
            f"({session.present_students}/{session.total_students})"
        )
        return MarkOutcome(OutcomeKind.MARKED, session, record, match, added)
