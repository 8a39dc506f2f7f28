import argparse
import asyncio
import random

from sqlalchemy import select

from attendance_api.auth import create_access_token
from attendance_api.database import AsyncSessionLocal
from attendance_api.models.student import Enrollment, Student

DESCRIPTOR_LENGTH = 128


async def seed(faculty_id: int, subject: str, section: str, count: int):
    async with AsyncSessionLocal() as session:
        # Check if DB is already seeded
        result = await session.execute(select(Student).limit(1))
        if result.scalars().first():
            print("Database already contains students. Skipping seed.")
        else:
            print(f"Seeding {count} demo students into {subject}/{section}...")
            for index in range(1, count + 1):
                # Mock descriptor; the last student has none to exercise the skip path
                descriptor = (
                    [random.random() for _ in range(DESCRIPTOR_LENGTH)]
                    if index < count
                    else None
                )
                session.add(
                    Student(
                        name=f"Demo Student {index}",
                        roll_number=f"DEMO-{index:03d}",
                        face_descriptor=descriptor,
                        enrollments=[
                            Enrollment(
                                subject=subject, section=section, faculty_id=faculty_id
                            )
                        ],
                    )
                )
            await session.commit()
            print(f"Added {count} students.")

    print(f"Bearer token for faculty {faculty_id}:")
    print(create_access_token(faculty_id))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a demo roster")
    parser.add_argument("--faculty-id", type=int, default=1)
    parser.add_argument("--subject", default="Mathematics")
    parser.add_argument("--section", default="A")
    parser.add_argument("--count", type=int, default=3)
    args = parser.parse_args()
    asyncio.run(seed(args.faculty_id, args.subject, args.section, args.count))
