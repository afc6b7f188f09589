"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (resolver, sync, reports, calendar API).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from attendance_engine.common.constants import AttendanceStatus, DurationCategory, UserRole
from attendance_engine.config import settings
from attendance_engine.database import Base, get_db
from attendance_engine.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import attendance_engine.attendance.models  # noqa: F401
import attendance_engine.calendar_policy.models  # noqa: F401
import attendance_engine.directory.models  # noqa: F401
import attendance_engine.leave.models  # noqa: F401

from attendance_engine.attendance.models import EventAttendance
from attendance_engine.calendar_policy.models import (
    HolidayAcademicYear,
    HolidayEvent,
    SpecialWorkingDay,
    WeekendPolicy,
)
from attendance_engine.directory.models import (
    AcademicYear,
    CalendarEvent,
    ClassSection,
    SectionSubject,
    StudentEnrollment,
    User,
)

# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

CAMPUS_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
TENANT_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from attendance_engine.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────
# Factories commit so rows survive rollbacks issued by the code under test.


async def _make_year(db, *, year_name: str = "2023-2024",
                     campus_id: uuid.UUID = CAMPUS_ID) -> AcademicYear:
    year = AcademicYear(
        campus_id=campus_id,
        year_name=year_name,
        start_date=date(2023, 6, 1),
        end_date=date(2024, 5, 31),
    )
    db.add(year)
    await db.commit()
    return year


async def _make_user(db, *, username: str, role: UserRole = UserRole.student,
                     first_name: Optional[str] = None,
                     campus_id: uuid.UUID = CAMPUS_ID) -> User:
    user = User(
        tenant_id=TENANT_ID,
        campus_id=campus_id,
        username=username,
        first_name=first_name or username.capitalize(),
        last_name="Test",
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


async def _enroll(db, user: User, year: AcademicYear, *,
                  section: Optional[ClassSection] = None) -> StudentEnrollment:
    enrollment = StudentEnrollment(
        username=user.username,
        campus_id=user.campus_id,
        academic_year_id=year.id,
        class_id=section.class_id if section else None,
        section_id=section.id if section else None,
    )
    db.add(enrollment)
    await db.commit()
    return enrollment


async def _make_section(db, year: AcademicYear, *, name: str = "A",
                        teacher: Optional[User] = None) -> ClassSection:
    section = ClassSection(
        campus_id=year.campus_id,
        class_id=uuid.uuid4(),
        academic_year_id=year.id,
        section_name=name,
    )
    db.add(section)
    await db.flush()
    if teacher is not None:
        db.add(SectionSubject(
            section_id=section.id,
            subject_name="Mathematics",
            teacher_user_id=teacher.id,
        ))
    await db.commit()
    return section


async def _make_event(db, *, day: date, year: Optional[AcademicYear] = None,
                      name: str = "Period 1") -> CalendarEvent:
    event = CalendarEvent(
        tenant_id=TENANT_ID,
        campus_id=CAMPUS_ID,
        academic_year_id=year.id if year else None,
        event_name=name,
        start_date=day,
        end_date=day,
    )
    db.add(event)
    await db.commit()
    return event


async def _make_weekend_policy(db, year: AcademicYear, *, sunday: bool = True,
                               saturday: bool = True,
                               saturday_half: bool = False) -> WeekendPolicy:
    policy = WeekendPolicy(
        campus_id=year.campus_id,
        academic_year_id=year.id,
        is_sunday_holiday=sunday,
        is_saturday_holiday=saturday,
        is_saturday_half_day=saturday_half,
    )
    db.add(policy)
    await db.commit()
    return policy


async def _make_holiday(db, *, name: str, start: date, end: Optional[date] = None,
                        years: tuple = (),
                        duration: DurationCategory = DurationCategory.full_day) -> HolidayEvent:
    holiday = HolidayEvent(
        campus_id=CAMPUS_ID,
        holiday_name=name,
        start_date=start,
        end_date=end or start,
        duration_category=duration,
        academic_years=[HolidayAcademicYear(academic_year_id=y.id) for y in years],
    )
    db.add(holiday)
    await db.commit()
    return holiday


async def _make_special_day(db, *, day: date, description: str = "Make-up day",
                            year: Optional[AcademicYear] = None) -> SpecialWorkingDay:
    special = SpecialWorkingDay(
        campus_id=CAMPUS_ID,
        work_date=day,
        description=description,
        academic_year_id=year.id if year else None,
    )
    db.add(special)
    await db.commit()
    return special


async def _make_session_row(db, *, event: CalendarEvent, user: User, day: date,
                            present: str, scheduled: str,
                            year: Optional[AcademicYear] = None) -> EventAttendance:
    """Insert a raw session row, bypassing the sync engine."""
    row = EventAttendance(
        event_id=event.id,
        user_id=user.id,
        attendance_date=day,
        attendance_status=(
            AttendanceStatus.present if Decimal(present) > 0 else AttendanceStatus.absent
        ),
        actual_present_hours=Decimal(present),
        total_scheduled_hours=Decimal(scheduled),
        academic_year_id=year.id if year else None,
    )
    db.add(row)
    await db.commit()
    return row


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.admin,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
async def admin_user(db) -> User:
    return await _make_user(db, username="admin", role=UserRole.admin)


@pytest.fixture
async def auth_headers(admin_user) -> dict[str, str]:
    """Bearer auth headers for an active campus Admin."""
    token = create_access_token(admin_user.id, UserRole.admin)
    return {"Authorization": f"Bearer {token}"}
