"""Leave counts consumed by the consolidated report.

Pending counts every pending request of the user regardless of date;
approved counts only approved days inside the report range.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.common.constants import LeaveStatus
from attendance_engine.leave.models import LeaveRequest


@dataclass(frozen=True)
class LeaveCounts:
    pending: int = 0
    approved: int = 0


class LeaveCounter:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def count_pending(self, username: str) -> int:
        result = await self.db.execute(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.username == username,
                LeaveRequest.overall_status == LeaveStatus.pending,
            )
        )
        return result.scalar_one()

    async def count_approved(self, username: str, start_date: date, end_date: date) -> int:
        result = await self.db.execute(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.username == username,
                LeaveRequest.overall_status == LeaveStatus.approved,
                LeaveRequest.leave_date >= start_date,
                LeaveRequest.leave_date <= end_date,
            )
        )
        return result.scalar_one()

    async def counts(
        self,
        usernames: Sequence[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, LeaveCounts]:
        """Pending and approved counts for many users in one query."""

        if not usernames:
            return {}

        in_range = (LeaveRequest.leave_date >= start_date) & (LeaveRequest.leave_date <= end_date)
        result = await self.db.execute(
            select(
                LeaveRequest.username,
                func.count(LeaveRequest.id)
                .filter(LeaveRequest.overall_status == LeaveStatus.pending)
                .label("pending"),
                func.count(LeaveRequest.id)
                .filter((LeaveRequest.overall_status == LeaveStatus.approved) & in_range)
                .label("approved"),
            )
            .where(LeaveRequest.username.in_(list(usernames)))
            .group_by(LeaveRequest.username)
        )
        return {
            row.username: LeaveCounts(pending=row.pending, approved=row.approved)
            for row in result.all()
        }
