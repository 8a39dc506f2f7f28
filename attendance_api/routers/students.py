from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from attendance_api.auth import get_current_faculty_id
from attendance_api.database import get_db
from attendance_api.models.student import Enrollment, Student
from attendance_api.schemas.student import EnrollmentBase, StudentCreate, StudentRead
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/students", tags=["students"])


@router.post(
    "/register", response_model=StudentRead, status_code=status.HTTP_201_CREATED
)
async def register_student(
    student_in: StudentCreate,
    faculty_id: int = Depends(get_current_faculty_id),
    db: AsyncSession = Depends(get_db),
):
    """Register a student and enroll them in the caller's subject/sections."""

    query = select(Student).where(Student.roll_number == student_in.roll_number)
    result = await db.execute(query)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Roll number '{student_in.roll_number}' already registered.",
        )

    pairs = {(e.subject.strip(), e.section.strip()) for e in student_in.enrollments}
    new_student = Student(
        name=student_in.name,
        roll_number=student_in.roll_number,
        face_descriptor=student_in.face_descriptor,
        enrollments=[
            Enrollment(subject=subject, section=section, faculty_id=faculty_id)
            for subject, section in sorted(pairs)
        ],
    )

    db.add(new_student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Integrity Error: Duplicate data or invalid format.",
        )

    logger.info(
        f"Registered student {new_student.roll_number} with "
        f"{len(new_student.enrollments)} enrollment(s)"
    )
    return StudentRead.from_student(new_student, faculty_id)


@router.post(
    "/{student_id}/enrollments",
    response_model=StudentRead,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    student_id: int,
    enrollment_in: EnrollmentBase,
    faculty_id: int = Depends(get_current_faculty_id),
    db: AsyncSession = Depends(get_db),
):
    student = await db.get(Student, student_id)
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Student not found"
        )

    subject = enrollment_in.subject.strip()
    section = enrollment_in.section.strip()
    already = any(
        e.subject == subject and e.section == section and e.faculty_id == faculty_id
        for e in student.enrollments
    )
    if not already:
        student.enrollments.append(
            Enrollment(subject=subject, section=section, faculty_id=faculty_id)
        )
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Integrity Error: Duplicate enrollment.",
            )

    return StudentRead.from_student(student, faculty_id)


@router.get("/", response_model=List[StudentRead])
async def list_students(
    subject: str,
    section: str,
    faculty_id: int = Depends(get_current_faculty_id),
    db: AsyncSession = Depends(get_db),
):
    query = (
        select(Student)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(
            Enrollment.subject == subject,
            Enrollment.section == section,
            Enrollment.faculty_id == faculty_id,
        )
        .order_by(Student.id)
    )
    result = await db.execute(query)
    return [
        StudentRead.from_student(student, faculty_id)
        for student in result.scalars().unique().all()
    ]
