import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from attendance_api.auth import get_current_faculty_id
from attendance_api.dependencies import get_attendance_service
from attendance_api.exceptions import OutcomeKind
from attendance_api.schemas.attendance import (
    AttendanceCounts,
    MarkAttendanceRequest,
    MarkAttendanceResponse,
    MarkedStudent,
    RecordRead,
    ReportsResponse,
    SessionDetailResponse,
    SessionStudent,
    SessionSummary,
    StartSessionRequest,
    StartSessionResponse,
)
from attendance_api.services.attendance import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/sessions", response_model=StartSessionResponse)
async def start_attendance_session(
    request: StartSessionRequest,
    response: Response,
    faculty_id: int = Depends(get_current_faculty_id),
    service: AttendanceService = Depends(get_attendance_service),
):
    outcome = await service.start_session(
        faculty_id,
        request.subject,
        request.section,
        request.session_type,
        request.hours,
    )
    session = outcome.session

    if outcome.kind == OutcomeKind.ALREADY_EXISTS:
        return StartSessionResponse(
            outcome=outcome.kind.value,
            message="Attendance session already exists for today",
            session_id=session.id,
            total_students=session.total_students,
            students=[
                SessionStudent(
                    id=record.student_id,
                    name=record.student_name,
                    roll_number=record.roll_number,
                    is_present=record.is_present,
                )
                for record in session.records
            ],
        )

    response.status_code = status.HTTP_201_CREATED
    return StartSessionResponse(
        outcome=outcome.kind.value,
        message="Attendance session started",
        session_id=session.id,
        total_students=session.total_students,
        students=[
            SessionStudent(
                id=student.id,
                name=student.name,
                roll_number=student.roll_number,
                has_face_descriptor=student.has_face_descriptor,
            )
            for student in outcome.roster
        ],
    )


@router.post(
    "/mark",
    response_model=MarkAttendanceResponse,
    responses={404: {"description": "No matching student or session"}},
)
async def mark_attendance(
    request: MarkAttendanceRequest,
    faculty_id: int = Depends(get_current_faculty_id),
    service: AttendanceService = Depends(get_attendance_service),
):
    outcome = await service.mark_attendance(
        faculty_id,
        request.session_id,
        face_descriptor=request.face_descriptor,
        face_image_base64=request.face_image_base64,
    )

    if outcome.kind == OutcomeKind.NO_MATCH:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "outcome": outcome.kind.value,
                "message": "No matching student found",
                "hint": (
                    "Face does not match any enrolled student. Please ensure the "
                    "student is registered for this subject/section."
                ),
            },
        )

    match = outcome.match
    if outcome.kind == OutcomeKind.ALREADY_MARKED:
        message = "Student already marked present"
        confidence = None
    elif outcome.added_to_session:
        message = "Attendance marked successfully (student added to session)"
        confidence = match.confidence
    else:
        message = "Attendance marked successfully"
        confidence = match.confidence

    return MarkAttendanceResponse(
        outcome=outcome.kind.value,
        message=message,
        student=MarkedStudent(
            id=match.student.id,
            name=match.student.name,
            roll_number=match.student.roll_number,
            confidence=confidence,
        ),
        attendance=AttendanceCounts.from_session(outcome.session),
        added_to_session=outcome.added_to_session,
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_attendance_session(
    session_id: int,
    faculty_id: int = Depends(get_current_faculty_id),
    service: AttendanceService = Depends(get_attendance_service),
):
    session = await service.get_owned_session(faculty_id, session_id)
    return SessionDetailResponse(
        session=SessionSummary.from_session(session),
        records=[RecordRead.model_validate(record) for record in session.records],
    )


@router.get("/reports", response_model=ReportsResponse)
async def get_attendance_reports(
    subject: Optional[str] = None,
    section: Optional[str] = None,
    start_date: Optional[datetime.date] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[datetime.date] = Query(None, description="YYYY-MM-DD"),
    faculty_id: int = Depends(get_current_faculty_id),
    service: AttendanceService = Depends(get_attendance_service),
):
    """
    Most recent sessions of the caller, newest first, with optional filters.
    """
    sessions = await service.list_reports(
        faculty_id,
        subject=subject,
        section=section,
        start_date=start_date,
        end_date=end_date,
    )
    return ReportsResponse(
        sessions=[SessionSummary.from_session(session) for session in sessions]
    )
