import asyncio
import logging

from sqlalchemy import select

from attendance_api.database import AsyncSessionLocal
from attendance_api.models.attendance import AttendanceSession
from attendance_api.schemas.attendance import attendance_percentage

# Keep SQLAlchemy quiet, the table is the output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


async def show_attendance():
    print("\n" + "="*95)
    print(f" {'ID':<5} | {'Date':<12} | {'Subject':<20} | {'Section':<8} | {'Type':<10} | {'Present':<12} | {'%':<4}")
    print("="*95)

    try:
        async with AsyncSessionLocal() as session:
            query = select(AttendanceSession).order_by(
                AttendanceSession.date.desc(), AttendanceSession.created_at.desc()
            )
            result = await session.execute(query)
            sessions = result.scalars().all()

            if not sessions:
                print(f" {'No sessions found.':<90}")
            else:
                for item in sessions:
                    present = f"{item.present_students}/{item.total_students}"
                    pct = attendance_percentage(item.present_students, item.total_students)
                    print(f" {item.id:<5} | {str(item.date):<12} | {item.subject:<20} | {item.section:<8} | {item.session_type:<10} | {present:<12} | {pct:<4}")

    except Exception as e:
        print(f"\n[!] Error fetching data: {e}")
        if "DATABASE_URL" in str(e):
            print("    Hint: Check your .env file location.")

    print("="*95 + "\n")

if __name__ == "__main__":
    try:
        asyncio.run(show_attendance())
    except KeyboardInterrupt:
        pass
