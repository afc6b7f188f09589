"""Attendance router — session registers, deletions and range sync.

Writes are taken by teachers and above; range sync is an administrative
operation and rate limited.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.attendance.schemas import (
    DeleteEventAttendanceResponse,
    EventAttendanceResponse,
    SaveEventAttendanceRequest,
    SaveEventAttendanceResponse,
    SyncRangeRequest,
    SyncRangeResult,
)
from attendance_engine.attendance.service import AttendanceSyncEngine
from attendance_engine.auth.dependencies import CurrentUser, campus_of, require_role
from attendance_engine.common.constants import UserRole
from attendance_engine.common.rate_limit import HEAVY_OPERATION_LIMIT, limiter
from attendance_engine.database import get_db

router = APIRouter(prefix="", tags=["attendance"])

_register_takers = require_role(UserRole.teacher, UserRole.principal, UserRole.admin)


# ── GET /events/{event_id} ──────────────────────────────────────────

@router.get("/events/{event_id}", response_model=list[EventAttendanceResponse])
async def get_event_attendance(
    event_id: uuid.UUID,
    user: CurrentUser = Depends(_register_takers),
    db: AsyncSession = Depends(get_db),
):
    """The register of one event, with user names."""
    return await AttendanceSyncEngine(db).get_event_attendance(event_id)


# ── POST /events/{event_id} ─────────────────────────────────────────

@router.post("/events/{event_id}", response_model=SaveEventAttendanceResponse)
async def save_event_attendance(
    event_id: uuid.UUID,
    body: SaveEventAttendanceRequest,
    user: CurrentUser = Depends(_register_takers),
    db: AsyncSession = Depends(get_db),
):
    """Save a class register and recompute each student's daily attendance."""
    return await AttendanceSyncEngine(db).save_event_attendance(
        event_id,
        body.records,
        attendance_date=body.attendance_date,
        academic_year_id=body.academic_year_id,
    )


# ── DELETE /events/{event_id} ───────────────────────────────────────

@router.delete("/events/{event_id}", response_model=DeleteEventAttendanceResponse)
async def delete_event_attendance(
    event_id: uuid.UUID,
    user_ids: Optional[list[uuid.UUID]] = Query(
        None, description="Omit to delete the attendance of every user at the event",
    ),
    user: CurrentUser = Depends(_register_takers),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceSyncEngine(db).delete_event_attendance(event_id, user_ids)


# ── POST /sync ──────────────────────────────────────────────────────

@router.post("/sync", response_model=SyncRangeResult)
@limiter.limit(HEAVY_OPERATION_LIMIT)
async def sync_range(
    request: Request,
    body: SyncRangeRequest,
    user: CurrentUser = Depends(require_role(UserRole.principal, UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Recompute daily summaries from session attendance over a date range."""
    return await AttendanceSyncEngine(db).sync_range(
        campus_of(user, body.campus_id),
        body.start_date,
        body.end_date,
        body.academic_year_name,
    )
