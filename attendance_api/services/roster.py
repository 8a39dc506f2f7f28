from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_api.models.student import Enrollment, Student
from attendance_api.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnrolledStudent:
    id: int
    name: str
    roll_number: str
    face_descriptor: Optional[Tuple[float, ...]] = None

    @property
    def has_face_descriptor(self) -> bool:
        return bool(self.face_descriptor)

    @classmethod
    def from_model(cls, student: Student) -> "EnrolledStudent":
        if student.id is None or not student.name or not student.roll_number:
            raise ValueError(f"Student row {student.id!r} is missing required fields")

        descriptor = student.face_descriptor
        return cls(
            id=student.id,
            name=student.name,
            roll_number=student.roll_number,
            face_descriptor=tuple(float(v) for v in descriptor) if descriptor else None,
        )


class RosterService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(
        self, subject: str, section: str, owner_id: int
    ) -> List[EnrolledStudent]:
        """
        Students enrolled in subject/section under the given faculty owner,
        ordered by student id so repeated calls see a stable order.
        """
        query = (
            select(Student)
            .join(Enrollment, Enrollment.student_id == Student.id)
            .where(
                Enrollment.subject == subject,
                Enrollment.section == section,
                Enrollment.faculty_id == owner_id,
            )
            .order_by(Student.id)
            # Always read what is committed now, not what this session cached
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        students: Sequence[Student] = result.scalars().unique().all()

        roster = []
        for student in students:
            try:
                roster.append(EnrolledStudent.from_model(student))
            except ValueError as exc:
                logger.warning(f"Skipping malformed roster entry: {exc}")
        return roster
