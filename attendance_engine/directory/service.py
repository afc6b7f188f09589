"""Directory lookups consumed by the attendance engine.

Resolves users, their roles and campus, student enrollments and the
academic-year contexts a teacher is active in. Read-only.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.common.constants import UserRole, UserStatus
from attendance_engine.directory.models import (
    AcademicYear,
    CalendarEvent,
    ClassSection,
    SectionSubject,
    StudentEnrollment,
    User,
)
from attendance_engine.directory.schemas import DirectoryUser


class DirectoryService:
    """Async read access to users, enrollments, sections and events."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_event(self, event_id: uuid.UUID) -> Optional[CalendarEvent]:
        return await self.db.get(CalendarEvent, event_id)

    async def get_year_name(self, academic_year_id: Optional[uuid.UUID]) -> Optional[str]:
        if academic_year_id is None:
            return None
        result = await self.db.execute(
            select(AcademicYear.year_name).where(AcademicYear.id == academic_year_id)
        )
        return result.scalars().first()

    async def get_year_names(self, academic_year_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, str]:
        ids = set(academic_year_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(AcademicYear.id, AcademicYear.year_name).where(AcademicYear.id.in_(ids))
        )
        return {year_id: name for year_id, name in result.all()}

    # ── Report population ───────────────────────────────────────────

    async def find_report_users(
        self,
        *,
        tenant_id: uuid.UUID,
        campus_id: uuid.UUID,
        roles: Sequence[UserRole],
        academic_year_name: Optional[str] = None,
        class_id: Optional[uuid.UUID] = None,
        section_id: Optional[uuid.UUID] = None,
    ) -> list[DirectoryUser]:
        """Active users of *roles* on the campus, each with its academic-year contexts.

        Students are narrowed by year name / class / section through their
        enrollments; a student with no matching enrollment is excluded when any
        of those filters is given. Teachers carry the years of the sections
        they teach. Other roles carry no context. Ordered by username.
        """

        result = await self.db.execute(
            select(User)
            .where(
                User.tenant_id == tenant_id,
                User.campus_id == campus_id,
                User.status == UserStatus.active,
                User.role.in_(list(roles)),
            )
            .order_by(User.username)
        )
        users = result.scalars().all()

        student_names = [u.username for u in users if u.role == UserRole.student]
        teacher_ids = [u.id for u in users if u.role == UserRole.teacher]

        student_years = await self._student_contexts(
            student_names,
            campus_id=campus_id,
            academic_year_name=academic_year_name,
            class_id=class_id,
            section_id=section_id,
        )
        teacher_years = await self.teacher_contexts(teacher_ids)
        student_filtered = any(
            f is not None for f in (academic_year_name, class_id, section_id)
        )

        out: list[DirectoryUser] = []
        for user in users:
            if user.role == UserRole.student:
                years = student_years.get(user.username, frozenset())
                if student_filtered and not years:
                    continue
            elif user.role == UserRole.teacher:
                years = teacher_years.get(user.id, frozenset())
            else:
                years = frozenset()
            out.append(
                DirectoryUser(
                    user_id=user.id,
                    username=user.username,
                    first_name=user.first_name,
                    last_name=user.last_name or "",
                    role=user.role,
                    academic_year_ids=years,
                )
            )
        return out

    async def _student_contexts(
        self,
        usernames: Sequence[str],
        *,
        campus_id: uuid.UUID,
        academic_year_name: Optional[str],
        class_id: Optional[uuid.UUID],
        section_id: Optional[uuid.UUID],
    ) -> dict[str, frozenset[uuid.UUID]]:
        if not usernames:
            return {}

        query = (
            select(StudentEnrollment.username, StudentEnrollment.academic_year_id)
            .join(AcademicYear, StudentEnrollment.academic_year_id == AcademicYear.id)
            .where(
                StudentEnrollment.username.in_(list(usernames)),
                StudentEnrollment.campus_id == campus_id,
            )
        )
        if academic_year_name:
            query = query.where(AcademicYear.year_name == academic_year_name)
        if class_id:
            query = query.where(StudentEnrollment.class_id == class_id)
        if section_id:
            query = query.where(StudentEnrollment.section_id == section_id)

        result = await self.db.execute(query)
        years: dict[str, set[uuid.UUID]] = defaultdict(set)
        for row in result.all():
            years[row.username].add(row.academic_year_id)
        return {name: frozenset(ids) for name, ids in years.items()}

    async def teacher_contexts(
        self, teacher_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, frozenset[uuid.UUID]]:
        """Academic years of every class section each teacher is assigned to."""

        if not teacher_ids:
            return {}
        result = await self.db.execute(
            select(SectionSubject.teacher_user_id, ClassSection.academic_year_id)
            .join(ClassSection, SectionSubject.section_id == ClassSection.id)
            .where(SectionSubject.teacher_user_id.in_(list(teacher_ids)))
            .distinct()
        )
        years: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)
        for row in result.all():
            years[row.teacher_user_id].add(row.academic_year_id)
        return {tid: frozenset(ids) for tid, ids in years.items()}
