from .attendance import (
    MarkAttendanceRequest,
    MarkAttendanceResponse,
    ReportsResponse,
    SessionDetailResponse,
    SessionSummary,
    StartSessionRequest,
    StartSessionResponse,
)
from .student import EnrollmentBase, StudentCreate, StudentRead

__all__ = [
    "StudentCreate",
    "StudentRead",
    "EnrollmentBase",
    "StartSessionRequest",
    "StartSessionResponse",
    "MarkAttendanceRequest",
    "MarkAttendanceResponse",
    "SessionSummary",
    "SessionDetailResponse",
    "ReportsResponse",
]
