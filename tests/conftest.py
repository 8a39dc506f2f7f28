import datetime
import os

os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["LOG_FILE"] = ""
os.environ["CACHE_BACKEND"] = "memory"
os.environ["SECRET_KEY"] = "test-secret-key-for-attendance-api-0001"

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from attendance_api.auth import create_access_token
from attendance_api.database import get_db
from attendance_api.main import app
from attendance_api.models import Base
from attendance_api.models.student import Enrollment, Student
from attendance_api.services.rate_limiter import InMemoryCooldownStore, SessionRateLimiter
from attendance_api.services.roster import RosterService
from attendance_api.services.sessions import SessionKey, SessionStore
from attendance_api.services.reconciler import SessionReconciler

FACULTY_ID = 1
SUBJECT = "Mathematics"
SECTION = "A"


class FixedClock:
    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now


class ManualTimer:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(datetime.datetime(2026, 10, 18, 9, 30, tzinfo=datetime.timezone.utc))


@pytest.fixture
def session_key(clock):
    return SessionKey(
        faculty_id=FACULTY_ID,
        subject=SUBJECT,
        section=SECTION,
        session_type="lecture",
        date=clock().date(),
    )


@pytest.fixture
def reconciler(db, clock):
    return SessionReconciler(SessionStore(db), RosterService(db), clock=clock)


@pytest.fixture
def add_student(session_factory):
    """Commits a student enrolled in SUBJECT/SECTION (or the given pair)."""

    async def _add(
        name,
        roll_number,
        descriptor=None,
        subject=SUBJECT,
        section=SECTION,
        faculty_id=FACULTY_ID,
    ):
        async with session_factory() as session:
            student = Student(
                name=name,
                roll_number=roll_number,
                face_descriptor=descriptor,
                enrollments=[
                    Enrollment(subject=subject, section=section, faculty_id=faculty_id)
                ],
            )
            session.add(student)
            await session.commit()
            return student.id

    return _add


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
async def client(session_factory, timer):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_limiter = SessionRateLimiter(InMemoryCooldownStore(clock=timer), 5.0)
    app.state.embedding_client = None

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(FACULTY_ID)}"}
