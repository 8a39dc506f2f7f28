import datetime as dt
from typing import List, Optional
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class AttendanceSession(Base, TimestampMixin):
    __tablename__ = "attendance_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    faculty_id: Mapped[int] = mapped_column(nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    section: Mapped[str] = mapped_column(String(50), nullable=False)
    session_type: Mapped[str] = mapped_column(String(50), nullable=False)
    hours: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Day granularity; the session natural key includes it
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    total_students: Mapped[int] = mapped_column(nullable=False, default=0)
    present_students: Mapped[int] = mapped_column(nullable=False, default=0)
    absent_students: Mapped[int] = mapped_column(nullable=False, default=0)

    # Optimistic concurrency token, bumped on every UPDATE
    version: Mapped[int] = mapped_column(nullable=False)

    records: Mapped[List["AttendanceRecord"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="AttendanceRecord.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint(
            "faculty_id",
            "subject",
            "section",
            "session_type",
            "date",
            name="uq_attendance_session_daily",
        ),
    )
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    def __repr__(self):
        return (
            f"<AttendanceSession(id={self.id}, subject='{self.subject}', "
            f"section='{self.section}', date='{self.date}')>"
        )


class AttendanceRecord(Base, TimestampMixin):
    __tablename__ = "attendance_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    session_id: Mapped[int] = mapped_column(
        ForeignKey("attendance_sessions.id"), nullable=False, index=True
    )
    # Reference only, the name and roll number are copied at snapshot time
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    student_name: Mapped[str] = mapped_column(String(100), nullable=False)
    roll_number: Mapped[str] = mapped_column(String(50), nullable=False)

    is_present: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    marked_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    confidence: Mapped[Optional[float]] = mapped_column(nullable=True)

    session: Mapped["AttendanceSession"] = relationship(back_populates="records")

    # one record per student per session.
    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_session_student"),
    )

    def __repr__(self):
        return (
            f"<AttendanceRecord(session_id={self.session_id}, "
            f"student_id={self.student_id}, is_present={self.is_present})>"
        )
