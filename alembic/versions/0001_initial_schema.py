"""students, enrollments and attendance sessions

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("roll_number", sa.String(length=50), nullable=False),
        sa.Column("face_descriptor", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_students_id", "students", ["id"])
    op.create_index("ix_students_roll_number", "students", ["roll_number"], unique=True)

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("subject", sa.String(length=100), nullable=False),
        sa.Column("section", sa.String(length=50), nullable=False),
        sa.Column("faculty_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "student_id", "subject", "section", "faculty_id", name="uq_enrollment"
        ),
    )
    op.create_index("ix_enrollments_id", "enrollments", ["id"])
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_faculty_id", "enrollments", ["faculty_id"])

    op.create_table(
        "attendance_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("faculty_id", sa.Integer(), nullable=False),
        sa.Column("subject", sa.String(length=100), nullable=False),
        sa.Column("section", sa.String(length=50), nullable=False),
        sa.Column("session_type", sa.String(length=50), nullable=False),
        sa.Column("hours", sa.JSON(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_students", sa.Integer(), nullable=False),
        sa.Column("present_students", sa.Integer(), nullable=False),
        sa.Column("absent_students", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "faculty_id",
            "subject",
            "section",
            "session_type",
            "date",
            name="uq_attendance_session_daily",
        ),
    )
    op.create_index("ix_attendance_sessions_id", "attendance_sessions", ["id"])
    op.create_index(
        "ix_attendance_sessions_faculty_id", "attendance_sessions", ["faculty_id"]
    )
    op.create_index("ix_attendance_sessions_date", "attendance_sessions", ["date"])

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("attendance_sessions.id"),
            nullable=False,
        ),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("student_name", sa.String(length=100), nullable=False),
        sa.Column("roll_number", sa.String(length=50), nullable=False),
        sa.Column("is_present", sa.Boolean(), nullable=False),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "student_id", name="uq_session_student"),
    )
    op.create_index("ix_attendance_records_id", "attendance_records", ["id"])
    op.create_index(
        "ix_attendance_records_session_id", "attendance_records", ["session_id"]
    )
    op.create_index(
        "ix_attendance_records_student_id", "attendance_records", ["student_id"]
    )


def downgrade() -> None:
    op.drop_table("attendance_records")
    op.drop_table("attendance_sessions")
    op.drop_table("enrollments")
    op.drop_table("students")
