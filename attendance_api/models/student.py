from typing import List, Optional
from sqlalchemy import ForeignKey, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    roll_number: Mapped[str] = mapped_column(
        String(50), unique=True, index=True, nullable=False
    )

    # Length depends on the embedding model, so it is not fixed by the schema
    face_descriptor: Mapped[Optional[List[float]]] = mapped_column(JSON, nullable=True)

    enrollments: Mapped[List["Enrollment"]] = relationship(
        back_populates="student", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self):
        return f"<Student(id={self.id}, roll_number='{self.roll_number}')>"


class Enrollment(Base, TimestampMixin):
    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    section: Mapped[str] = mapped_column(String(50), nullable=False)

    # Owner reference resolved by the auth layer
    faculty_id: Mapped[int] = mapped_column(nullable=False, index=True)

    student: Mapped["Student"] = relationship(back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject", "section", "faculty_id", name="uq_enrollment"
        ),
    )

    def __repr__(self):
        return (
            f"<Enrollment(student_id={self.student_id}, "
            f"subject='{self.subject}', section='{self.section}')>"
        )
