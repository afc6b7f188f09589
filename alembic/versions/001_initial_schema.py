"""001 – Initial schema: directory, calendar policy, attendance and leave tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17 10:00:00.000000+05:30
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["Student", "Teacher", "Admin", "Principal", "Staff"]),
    ("user_status", ["active", "inactive"]),
    ("duration_category", ["full_day", "half_day"]),
    ("attendance_status", ["Present", "Absent"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. academic_years ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE academic_years (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            campus_id   UUID NOT NULL,
            year_name   VARCHAR(50) NOT NULL,
            start_date  DATE,
            end_date    DATE,
            CONSTRAINT uq_academic_year_campus_name UNIQUE (campus_id, year_name)
        )
    """)
    op.execute("CREATE INDEX ix_academic_years_campus_id ON academic_years(campus_id)")

    # ── 2. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id   UUID NOT NULL,
            campus_id   UUID NOT NULL,
            username    VARCHAR(100) NOT NULL UNIQUE,
            first_name  VARCHAR(100) NOT NULL,
            last_name   VARCHAR(100) DEFAULT '',
            role        user_role NOT NULL,
            status      user_status NOT NULL DEFAULT 'active',
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_users_tenant_id ON users(tenant_id)")
    op.execute("CREATE INDEX ix_users_campus_id ON users(campus_id)")

    # ── 3. class_sections / student_enrollments / section_subjects ───────
    op.execute("""
        CREATE TABLE class_sections (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            campus_id         UUID NOT NULL,
            class_id          UUID NOT NULL,
            academic_year_id  UUID NOT NULL REFERENCES academic_years(id),
            section_name      VARCHAR(20) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE student_enrollments (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            username          VARCHAR(100) NOT NULL,
            campus_id         UUID NOT NULL,
            academic_year_id  UUID NOT NULL REFERENCES academic_years(id),
            class_id          UUID,
            section_id        UUID REFERENCES class_sections(id)
        )
    """)
    op.execute(
        "CREATE INDEX ix_student_enrollments_username ON student_enrollments(username)"
    )
    op.execute("""
        CREATE TABLE section_subjects (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            section_id       UUID NOT NULL REFERENCES class_sections(id),
            subject_name     VARCHAR(100) NOT NULL,
            teacher_user_id  UUID REFERENCES users(id)
        )
    """)

    # ── 4. calendar_events ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE calendar_events (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            tenant_id         UUID NOT NULL,
            campus_id         UUID NOT NULL,
            academic_year_id  UUID REFERENCES academic_years(id),
            event_name        VARCHAR(150) NOT NULL,
            event_type        VARCHAR(50) DEFAULT 'class',
            start_date        DATE NOT NULL,
            end_date          DATE,
            start_time        TIME,
            end_time          TIME
        )
    """)
    op.execute("CREATE INDEX ix_calendar_events_campus_id ON calendar_events(campus_id)")

    # ── 5. weekend_policies ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE weekend_policies (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            campus_id             UUID NOT NULL,
            academic_year_id      UUID NOT NULL REFERENCES academic_years(id) ON DELETE CASCADE,
            is_sunday_holiday     BOOLEAN DEFAULT TRUE,
            is_saturday_holiday   BOOLEAN DEFAULT TRUE,
            is_saturday_half_day  BOOLEAN DEFAULT FALSE,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_weekend_policy_campus_year UNIQUE (campus_id, academic_year_id)
        )
    """)
    op.execute("CREATE INDEX ix_weekend_policies_campus_id ON weekend_policies(campus_id)")

    # ── 6. holiday_events / holiday_academic_years ────────────────────────
    op.execute("""
        CREATE TABLE holiday_events (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            campus_id          UUID NOT NULL,
            holiday_name       VARCHAR(150) NOT NULL,
            duration_category  duration_category NOT NULL DEFAULT 'full_day',
            start_date         DATE NOT NULL,
            end_date           DATE NOT NULL,
            holiday_type       VARCHAR(50) DEFAULT 'General',
            is_paid            BOOLEAN DEFAULT TRUE,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_holiday_event_dates CHECK (start_date <= end_date)
        )
    """)
    op.execute("CREATE INDEX ix_holiday_events_campus_id ON holiday_events(campus_id)")
    op.execute("""
        CREATE TABLE holiday_academic_years (
            holiday_id        UUID NOT NULL REFERENCES holiday_events(id) ON DELETE CASCADE,
            academic_year_id  UUID NOT NULL REFERENCES academic_years(id) ON DELETE CASCADE,
            PRIMARY KEY (holiday_id, academic_year_id)
        )
    """)

    # ── 7. special_working_days ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE special_working_days (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            campus_id         UUID NOT NULL,
            work_date         DATE NOT NULL,
            description       VARCHAR(255) DEFAULT '',
            academic_year_id  UUID REFERENCES academic_years(id) ON DELETE CASCADE,
            created_at        TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_special_working_days_campus_id ON special_working_days(campus_id)"
    )

    # ── 8. event_attendance ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE event_attendance (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            event_id               UUID NOT NULL REFERENCES calendar_events(id) ON DELETE CASCADE,
            user_id                UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            attendance_date        DATE NOT NULL,
            attendance_status      attendance_status NOT NULL,
            actual_present_hours   NUMERIC(6, 2) NOT NULL DEFAULT 0,
            total_scheduled_hours  NUMERIC(6, 2) NOT NULL DEFAULT 0,
            academic_year_id       UUID REFERENCES academic_years(id),
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_event_attendance_event_user_date
                UNIQUE (event_id, user_id, attendance_date)
        )
    """)
    op.execute(
        "CREATE INDEX ix_event_attendance_user_date ON event_attendance(user_id, attendance_date)"
    )

    # ── 9. user_attendance (daily summaries) ──────────────────────────────
    op.execute("""
        CREATE TABLE user_attendance (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            username         VARCHAR(100) NOT NULL,
            campus_id        UUID NOT NULL,
            attendance_date  DATE NOT NULL,
            status           attendance_status NOT NULL,
            duration         INTERVAL NOT NULL,
            total_duration   INTERVAL NOT NULL,
            login_time       TIME,
            logout_time      TIME,
            year_name        VARCHAR(50),
            role             user_role NOT NULL,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_user_attendance_user_date UNIQUE (username, attendance_date)
        )
    """)
    op.execute("CREATE INDEX ix_user_attendance_campus_id ON user_attendance(campus_id)")
    op.execute(
        "CREATE INDEX ix_user_attendance_attendance_date ON user_attendance(attendance_date)"
    )

    # ── 10. leave_requests ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            username        VARCHAR(100) NOT NULL,
            campus_id       UUID NOT NULL,
            leave_date      DATE NOT NULL,
            leave_type      VARCHAR(50),
            overall_status  leave_status NOT NULL DEFAULT 'pending',
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_user_date ON leave_requests(username, leave_date)"
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "leave_requests",
        "user_attendance",
        "event_attendance",
        "special_working_days",
        "holiday_academic_years",
        "holiday_events",
        "weekend_policies",
        "calendar_events",
        "section_subjects",
        "student_enrollments",
        "class_sections",
        "users",
        "academic_years",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
