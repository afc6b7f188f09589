"""Attendance sync engine test suite — aggregation threshold, upsert semantics,
deletion re-aggregation, range sync idempotency and rollback on failure.

Service-layer tests (direct DB) plus the attendance HTTP API.
"""

from __future__ import annotations

import uuid
from datetime import date, time, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy import event as sa_event, func, select
from sqlalchemy.exc import OperationalError

from attendance_engine.attendance.models import DailyAttendance, EventAttendance
from attendance_engine.attendance.schemas import EventAttendanceRecord
from attendance_engine.attendance.service import AttendanceSyncEngine, is_present
from attendance_engine.common.constants import AttendanceStatus, UserRole
from attendance_engine.common.exceptions import (
    AggregationError,
    NotFoundException,
    ValidationException,
)
from tests.conftest import (
    CAMPUS_ID,
    _make_event,
    _make_session_row,
    _make_user,
    _make_year,
    engine as test_engine,
)

DAY = date(2024, 4, 1)


# ── Helpers ─────────────────────────────────────────────────────────


async def _daily(db, username: str, day: date = DAY) -> DailyAttendance | None:
    result = await db.execute(
        select(DailyAttendance)
        .where(
            DailyAttendance.username == username,
            DailyAttendance.attendance_date == day,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _count(db, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def _record(engine, event, user, present: str, scheduled: str, day: date = DAY):
    return await engine.record_session_attendance(
        event_id=event.id,
        user_id=user.id,
        status=AttendanceStatus.present if Decimal(present) else AttendanceStatus.absent,
        present_hours=Decimal(present),
        scheduled_hours=Decimal(scheduled),
        attendance_date=day,
    )


# ── Threshold ───────────────────────────────────────────────────────


def test_presence_threshold_boundaries():
    assert is_present(Decimal("3"), Decimal("6")) is True
    assert is_present(Decimal("2"), Decimal("6")) is False
    assert is_present(Decimal("0"), Decimal("0")) is False


async def test_two_of_six_hours_is_absent(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    p1 = await _make_event(db, day=DAY, year=year, name="Period 1")
    p2 = await _make_event(db, day=DAY, year=year, name="Period 2")
    engine = AttendanceSyncEngine(db)

    await _record(engine, p1, u1, "2", "3")
    summary = await _record(engine, p2, u1, "0", "3")

    assert summary.status == AttendanceStatus.absent
    daily = await _daily(db, "u1")
    assert daily.status == AttendanceStatus.absent
    assert daily.duration == timedelta(hours=2)
    assert daily.total_duration == timedelta(hours=6)
    assert daily.year_name == "2023-2024"
    assert daily.role == UserRole.student


async def test_three_of_six_hours_is_present(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    p1 = await _make_event(db, day=DAY, year=year, name="Period 1")
    p2 = await _make_event(db, day=DAY, year=year, name="Period 2")
    engine = AttendanceSyncEngine(db)

    await _record(engine, p1, u1, "3", "3")
    summary = await _record(engine, p2, u1, "0", "3")

    assert summary.status == AttendanceStatus.present
    assert summary.duration == "03:00"
    assert summary.total_duration == "06:00"
    assert (await _daily(db, "u1")).status == AttendanceStatus.present


async def test_record_twice_updates_instead_of_duplicating(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    event = await _make_event(db, day=DAY, year=year)
    engine = AttendanceSyncEngine(db)

    await _record(engine, event, u1, "0", "2")
    summary = await _record(engine, event, u1, "2", "2")

    assert await _count(db, EventAttendance) == 1
    assert await _count(db, DailyAttendance) == 1
    assert summary.status == AttendanceStatus.present


async def test_non_student_roles_are_not_aggregated(db):
    year = await _make_year(db)
    teacher = await _make_user(db, username="t1", role=UserRole.teacher)
    event = await _make_event(db, day=DAY, year=year)

    summary = await _record(AttendanceSyncEngine(db), event, teacher, "1", "1")

    assert summary is None
    assert await _count(db, EventAttendance) == 1
    assert await _daily(db, "t1") is None


# ── Batch save ──────────────────────────────────────────────────────


async def test_save_event_attendance_defaults_to_event_date_and_year(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    u2 = await _make_user(db, username="u2")
    event = await _make_event(db, day=DAY, year=year)

    response = await AttendanceSyncEngine(db).save_event_attendance(
        event.id,
        [
            EventAttendanceRecord(
                user_id=u1.id, attendance_status="present",
                actual_present_hours=Decimal("1"), total_scheduled_hours=Decimal("1"),
            ),
            EventAttendanceRecord(
                user_id=u2.id, attendance_status="ABSENT",
                actual_present_hours=Decimal("0"), total_scheduled_hours=Decimal("1"),
            ),
        ],
    )

    assert response.attendance_date == DAY
    assert response.saved == 2
    assert {s.username: s.status for s in response.summaries} == {
        "u1": AttendanceStatus.present,
        "u2": AttendanceStatus.absent,
    }

    rows = await AttendanceSyncEngine(db).get_event_attendance(event.id)
    assert [r.username for r in rows] == ["u1", "u2"]
    assert all(r.academic_year_id == year.id for r in rows)


async def test_save_event_attendance_unknown_event(db):
    with pytest.raises(NotFoundException):
        await AttendanceSyncEngine(db).save_event_attendance(
            event_id=uuid.uuid4(), records=[],
        )


# ── Deletion ────────────────────────────────────────────────────────


async def test_deleting_all_sessions_resets_summary_to_absent(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    event = await _make_event(db, day=DAY, year=year)
    engine = AttendanceSyncEngine(db)
    await _record(engine, event, u1, "4", "4")

    response = await engine.delete_event_attendance(event.id, [u1.id])

    assert response.deleted == 1
    assert await _count(db, EventAttendance) == 0
    daily = await _daily(db, "u1")
    assert daily is not None
    assert daily.status == AttendanceStatus.absent
    assert daily.duration == timedelta(0)
    assert daily.total_duration == timedelta(0)
    assert daily.year_name == "2023-2024"


async def test_deleting_one_session_reaggregates_remaining(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    p1 = await _make_event(db, day=DAY, year=year, name="Period 1")
    p2 = await _make_event(db, day=DAY, year=year, name="Period 2")
    engine = AttendanceSyncEngine(db)
    await _record(engine, p1, u1, "0", "3")
    await _record(engine, p2, u1, "3", "3")
    assert (await _daily(db, "u1")).status == AttendanceStatus.present

    await engine.delete_event_attendance(p2.id)

    daily = await _daily(db, "u1")
    assert daily.status == AttendanceStatus.absent
    assert daily.total_duration == timedelta(hours=3)


# ── Rollback ────────────────────────────────────────────────────────


async def test_unknown_user_rolls_back_session_write(db):
    year = await _make_year(db)
    event = await _make_event(db, day=DAY, year=year)
    ghost = SimpleNamespace(id=uuid.uuid4())

    with pytest.raises(NotFoundException):
        await _record(AttendanceSyncEngine(db), event, ghost, "1", "1")

    assert await _count(db, EventAttendance) == 0


async def test_aggregation_failure_rolls_back_and_raises(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    event = await _make_event(db, day=DAY, year=year)

    with patch.object(
        AttendanceSyncEngine, "_aggregate",
        side_effect=OperationalError("UPDATE user_attendance", {}, Exception("locked")),
    ):
        with pytest.raises(AggregationError):
            await _record(AttendanceSyncEngine(db), event, u1, "1", "1")

    assert await _count(db, EventAttendance) == 0
    assert await _count(db, DailyAttendance) == 0


# ── Range sync ──────────────────────────────────────────────────────


async def test_sync_range_is_idempotent(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    u2 = await _make_user(db, username="u2")
    event = await _make_event(db, day=DAY, year=year)
    await _make_session_row(db, event=event, user=u1, day=DAY, present="2", scheduled="6", year=year)
    await _make_session_row(db, event=event, user=u2, day=DAY, present="3", scheduled="6", year=year)
    engine = AttendanceSyncEngine(db)

    first = await engine.sync_range(CAMPUS_ID, DAY, DAY)
    snapshot = {}
    for name in ("u1", "u2"):
        d = await _daily(db, name)
        snapshot[name] = (d.status, d.duration, d.total_duration)
    second = await engine.sync_range(CAMPUS_ID, DAY, DAY)

    assert first.synced == second.synced == 2
    assert first.failed == second.failed == 0
    assert await _count(db, DailyAttendance) == 2
    assert snapshot["u1"][0] == AttendanceStatus.absent
    assert snapshot["u2"][0] == AttendanceStatus.present
    for name in ("u1", "u2"):
        d = await _daily(db, name)
        assert (d.status, d.duration, d.total_duration) == snapshot[name]
        assert d.login_time == time(0, 0)


async def test_sync_range_aggregates_every_year_and_labels_unnamed(db):
    year_a = await _make_year(db, year_name="2023-2024")
    year_b = await _make_year(db, year_name="2024-2025")
    u1 = await _make_user(db, username="u1")
    u2 = await _make_user(db, username="u2")
    u3 = await _make_user(db, username="u3")
    event = await _make_event(db, day=DAY)
    await _make_session_row(db, event=event, user=u1, day=DAY, present="1", scheduled="1", year=year_a)
    await _make_session_row(db, event=event, user=u2, day=DAY, present="1", scheduled="1", year=year_b)
    await _make_session_row(db, event=event, user=u3, day=DAY, present="5", scheduled="6")

    result = await AttendanceSyncEngine(db).sync_range(CAMPUS_ID, DAY, DAY, "2024-2025")

    assert result.synced == 3
    assert (await _daily(db, "u1")).year_name == "2023-2024"
    assert (await _daily(db, "u2")).year_name == "2024-2025"
    unnamed = await _daily(db, "u3")
    assert unnamed.status == AttendanceStatus.present
    assert unnamed.year_name == "2024-2025"


async def test_sync_range_sums_every_session_of_the_day(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    p1 = await _make_event(db, day=DAY, year=year, name="Period 1")
    p2 = await _make_event(db, day=DAY, name="Period 2")
    await _make_session_row(db, event=p1, user=u1, day=DAY, present="1", scheduled="3", year=year)
    await _make_session_row(db, event=p2, user=u1, day=DAY, present="2", scheduled="3")

    await AttendanceSyncEngine(db).sync_range(CAMPUS_ID, DAY, DAY)

    summary = await _daily(db, "u1")
    assert summary.status == AttendanceStatus.present
    assert summary.duration == timedelta(hours=3)
    assert summary.total_duration == timedelta(hours=6)
    assert summary.year_name == "2023-2024"


async def test_sync_range_reads_are_batched(db):
    year = await _make_year(db)
    students = [await _make_user(db, username=f"u{i}") for i in range(5)]
    days = [DAY + timedelta(days=offset) for offset in range(4)]
    for day in days:
        event = await _make_event(db, day=day, year=year)
        for student in students:
            await _make_session_row(
                db, event=event, user=student, day=day, present="1", scheduled="2", year=year,
            )

    async def _statements(end: date) -> tuple[int, int]:
        seen: list[str] = []

        def _track(conn, cursor, statement, parameters, context, executemany):
            seen.append(statement.lstrip().split(None, 1)[0].upper())

        sa_event.listen(test_engine.sync_engine, "before_cursor_execute", _track)
        try:
            await AttendanceSyncEngine(db).sync_range(CAMPUS_ID, DAY, end)
        finally:
            sa_event.remove(test_engine.sync_engine, "before_cursor_execute", _track)
        return seen.count("SELECT"), seen.count("INSERT")

    one_day = await _statements(DAY)
    four_days = await _statements(days[-1])

    assert one_day == (3, 5)
    assert four_days == (3, 20)


async def test_sync_range_skips_failed_group_and_continues(db):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    u2 = await _make_user(db, username="u2")
    event = await _make_event(db, day=DAY, year=year)
    await _make_session_row(db, event=event, user=u1, day=DAY, present="1", scheduled="1", year=year)
    await _make_session_row(db, event=event, user=u2, day=DAY, present="1", scheduled="1", year=year)

    engine = AttendanceSyncEngine(db)
    original = engine._write_summary

    async def _flaky(**kwargs):
        if kwargs["username"] == "u1":
            raise OperationalError("UPDATE user_attendance", {}, Exception("locked"))
        return await original(**kwargs)

    with patch.object(engine, "_write_summary", side_effect=_flaky):
        result = await engine.sync_range(CAMPUS_ID, DAY, DAY)

    assert result.synced == 1
    assert result.failed == 1
    assert await _daily(db, "u1") is None
    assert (await _daily(db, "u2")).status == AttendanceStatus.present


async def test_sync_range_rejects_inverted_range(db):
    with pytest.raises(ValidationException):
        await AttendanceSyncEngine(db).sync_range(CAMPUS_ID, date(2024, 4, 2), DAY)


# ── HTTP API ────────────────────────────────────────────────────────


async def test_save_and_list_event_attendance_api(client, db, auth_headers):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    event = await _make_event(db, day=DAY, year=year)

    resp = await client.post(
        f"/api/v1/attendance/events/{event.id}",
        json={
            "records": [{
                "user_id": str(u1.id),
                "attendance_status": "present",
                "actual_present_hours": "1.5",
                "total_scheduled_hours": "2",
            }],
        },
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["saved"] == 1
    assert body["summaries"][0]["status"] == "Present"
    assert body["summaries"][0]["duration"] == "01:30"

    resp = await client.get(f"/api/v1/attendance/events/{event.id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()[0]["username"] == "u1"

    resp = await client.delete(f"/api/v1/attendance/events/{event.id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["deleted"] == 1
    assert resp.json()["summaries"][0]["status"] == "Absent"


async def test_sync_api_requires_principal_or_admin(client, db):
    from tests.conftest import create_access_token

    teacher = await _make_user(db, username="t1", role=UserRole.teacher)
    headers = {"Authorization": f"Bearer {create_access_token(teacher.id, UserRole.teacher)}"}

    resp = await client.post(
        "/api/v1/attendance/sync",
        json={"start_date": "2024-04-01", "end_date": "2024-04-30"},
        headers=headers,
    )
    assert resp.status_code == 403
    assert resp.headers["content-type"].startswith("application/problem+json")


async def test_sync_api_returns_counts(client, db, auth_headers):
    year = await _make_year(db)
    u1 = await _make_user(db, username="u1")
    event = await _make_event(db, day=DAY, year=year)
    await _make_session_row(db, event=event, user=u1, day=DAY, present="1", scheduled="2", year=year)

    resp = await client.post(
        "/api/v1/attendance/sync",
        json={"start_date": "2024-04-01", "end_date": "2024-04-30"},
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"synced": 1, "failed": 0}
