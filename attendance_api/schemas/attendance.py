from typing import List, Optional
import datetime  # Import module to avoid name collision with the field 'date'
from pydantic import BaseModel, ConfigDict, Field, field_validator

from attendance_api.models.attendance import AttendanceRecord, AttendanceSession


def attendance_percentage(present: int, total: int) -> int:
    if total <= 0:
        return 0
    # Half-up rounding, 2.5% -> 3%
    return int(present * 100 / total + 0.5)


# --- Request Schemas (Input) ---
class StartSessionRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=100, examples=["Mathematics"])
    section: str = Field(..., min_length=1, max_length=50, examples=["A"])
    session_type: str = Field(..., min_length=1, max_length=50, examples=["lecture"])
    hours: List[str] = Field(..., min_length=1, examples=[["1", "2"]])

    @field_validator("subject", "section", "session_type")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("hours")
    @classmethod
    def dedupe_hours(cls, value: List[str]) -> List[str]:
        # Ordered set of period identifiers
        seen: List[str] = []
        for hour in value:
            hour = hour.strip()
            if hour and hour not in seen:
                seen.append(hour)
        if not seen:
            raise ValueError("at least one period is required")
        return seen


class MarkAttendanceRequest(BaseModel):
    session_id: int = Field(..., gt=0)
    face_descriptor: Optional[List[float]] = None
    face_image_base64: Optional[str] = None


# --- Response Schemas (Output) ---
class SessionStudent(BaseModel):
    id: int
    name: str
    roll_number: str
    is_present: bool = False
    has_face_descriptor: Optional[bool] = None


class StartSessionResponse(BaseModel):
    outcome: str
    message: str
    session_id: int
    total_students: int
    students: List[SessionStudent]


class MarkedStudent(BaseModel):
    id: int
    name: str
    roll_number: str
    confidence: Optional[float] = None


class AttendanceCounts(BaseModel):
    present: int
    absent: int
    total: int

    @classmethod
    def from_session(cls, session: AttendanceSession) -> "AttendanceCounts":
        return cls(
            present=session.present_students,
            absent=session.absent_students,
            total=session.total_students,
        )


class MarkAttendanceResponse(BaseModel):
    outcome: str
    message: str
    student: MarkedStudent
    attendance: AttendanceCounts
    added_to_session: bool = False


class RecordRead(BaseModel):
    student_id: int
    student_name: str
    roll_number: str
    is_present: bool
    marked_at: datetime.datetime
    confidence: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class PresentStudent(BaseModel):
    id: int
    name: str
    roll_number: str
    marked_at: datetime.datetime
    confidence: Optional[float] = None
    marked_via: str = "Face Detection"


class AbsentStudent(BaseModel):
    id: int
    name: str
    roll_number: str


class SessionSummary(BaseModel):
    id: int
    subject: str
    section: str
    session_type: str
    hours: List[str]
    date: datetime.date
    total_students: int
    present_students: int
    absent_students: int
    attendance_percentage: int
    created_at: datetime.datetime
    updated_at: datetime.datetime
    present_students_list: List[PresentStudent]
    absent_students_list: List[AbsentStudent]

    @classmethod
    def from_session(cls, session: AttendanceSession) -> "SessionSummary":
        return cls(
            id=session.id,
            subject=session.subject,
            section=session.section,
            session_type=session.session_type,
            hours=list(session.hours or []),
            date=session.date,
            total_students=session.total_students,
            present_students=session.present_students,
            absent_students=session.absent_students,
            attendance_percentage=attendance_percentage(
                session.present_students, session.total_students
            ),
            created_at=session.created_at,
            updated_at=session.updated_at,
            present_students_list=[
                _present(record) for record in session.records if record.is_present
            ],
            absent_students_list=[
                AbsentStudent(
                    id=record.student_id,
                    name=record.student_name,
                    roll_number=record.roll_number,
                )
                for record in session.records
                if not record.is_present
            ],
        )


def _present(record: AttendanceRecord) -> PresentStudent:
    return PresentStudent(
        id=record.student_id,
        name=record.student_name,
        roll_number=record.roll_number,
        marked_at=record.marked_at,
        confidence=record.confidence,
    )


class SessionDetailResponse(BaseModel):
    session: SessionSummary
    records: List[RecordRead]


class ReportsResponse(BaseModel):
    sessions: List[SessionSummary]
