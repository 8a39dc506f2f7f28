from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from attendance_api.models.student import Student


class EnrollmentBase(BaseModel):
    subject: str = Field(..., min_length=1, max_length=100, examples=["Mathematics"])
    section: str = Field(..., min_length=1, max_length=50, examples=["A"])


# --- Base Schema (Shared properties) ---
class StudentBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, examples=["Jane Doe"])
    roll_number: str = Field(..., min_length=1, max_length=50, examples=["CS-2024-001"])


# --- Create Schema (Input) ---
class StudentCreate(StudentBase):
    # Produced by the embedding model on the client or the embedding service
    face_descriptor: Optional[List[float]] = Field(
        None, min_length=1, description="Face descriptor vector"
    )
    enrollments: List[EnrollmentBase] = Field(default_factory=list)


class EnrollmentRead(EnrollmentBase):
    faculty_id: int


# --- Read Schema (Output) ---
class StudentRead(StudentBase):
    id: int
    has_face_descriptor: bool
    enrollments: List[EnrollmentRead]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_student(
        cls, student: Student, faculty_id: Optional[int] = None
    ) -> "StudentRead":
        """Only enrollments owned by `faculty_id` are listed when it is given."""
        return cls(
            id=student.id,
            name=student.name,
            roll_number=student.roll_number,
            has_face_descriptor=bool(student.face_descriptor),
            enrollments=[
                EnrollmentRead(
                    subject=enrollment.subject,
                    section=enrollment.section,
                    faculty_id=enrollment.faculty_id,
                )
                for enrollment in student.enrollments
                if faculty_id is None or enrollment.faculty_id == faculty_id
            ],
            created_at=student.created_at,
            updated_at=student.updated_at,
        )
