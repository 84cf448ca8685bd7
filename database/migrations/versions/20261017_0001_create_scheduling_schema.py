"""create scheduling schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    shift = sa.Enum("M", "T", "N", name="shift")
    teacher_status = sa.Enum("Activo", "Inactivo", name="teacher_status")
    restriction_scope = sa.Enum("GLOBAL", "DOCENTE", "MATERIA", "AULA", "CARRERA", "PERIODO", name="restriction_scope")
    assignment_status = sa.Enum("Programado", "Confirmado", "Cancelado", name="assignment_status")
    # time_blocks creates the shared "shift" type first
    section_shift = shift
    if op.get_bind().dialect.name == "postgresql":
        section_shift = postgresql.ENUM("M", "T", "N", name="shift", create_type=False)

    op.create_table(
        "academic_periods",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "time_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("shift", shift, nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=True),
    )

    op.create_table(
        "specialties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("area", sa.String(length=200), nullable=True),
    )
    op.create_index("ix_specialties_code", "specialties", ["code"], unique=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("first_names", sa.String(length=200), nullable=False),
        sa.Column("last_names", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("status", teacher_status, nullable=False, server_default="Activo"),
        sa.Column("max_weekly_hours", sa.Integer(), nullable=True),
        sa.Column("max_daily_hours", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)

    op.create_table(
        "teacher_specialties",
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("specialty_id", sa.Integer(), sa.ForeignKey("specialties.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "teacher_availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("time_blocks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("preference", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("teacher_id", "period_id", "weekday", "block_id", name="uq_teacher_availability_slot"),
    )
    op.create_index("ix_teacher_availability_teacher_id", "teacher_availability", ["teacher_id"])
    op.create_index("ix_teacher_availability_period_id", "teacher_availability", ["period_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("room_type", sa.String(length=50), nullable=False, server_default="aula"),
        sa.Column("building", sa.String(length=200), nullable=True),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column("academic_unit_id", sa.Integer(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_code", "rooms", ["code"], unique=True)

    op.create_table(
        "subjects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("career_id", sa.Integer(), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("theory_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("practice_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lab_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("required_room_type", sa.String(length=50), nullable=True),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"], unique=True)
    op.create_index("ix_subjects_career_id", "subjects", ["career_id"])

    op.create_table(
        "subject_specialties",
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("specialty_id", sa.Integer(), sa.ForeignKey("specialties.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "course_sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("subject_id", sa.Integer(), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False),
        sa.Column("estimated_enrollment", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("preferred_shift", section_shift, nullable=True),
        sa.Column("pinned_teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_course_sections_subject_id", "course_sections", ["subject_id"])
    op.create_index("ix_course_sections_period_id", "course_sections", ["period_id"])

    op.create_table(
        "restriction_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("scope", restriction_scope, nullable=False),
        sa.Column("entity_id_1", sa.Integer(), nullable=True),
        sa.Column("entity_id_2", sa.Integer(), nullable=True),
        sa.Column("parameter_value", sa.String(length=100), nullable=True),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "generation_runs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("summary_status", sa.String(length=30), nullable=False),
        sa.Column("run_state", sa.String(length=30), nullable=False),
        sa.Column("conflicts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sections", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("teachers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rooms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("conflict_report", sa.JSON(), nullable=False),
        sa.Column("runtime_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_generation_runs_period_id", "generation_runs", ["period_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("course_sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("time_blocks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", assignment_status, nullable=False, server_default="Programado"),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column(
            "generation_run_id",
            sa.String(length=36),
            sa.ForeignKey("generation_runs.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_assignments_period_id", "assignments", ["period_id"])


def downgrade() -> None:
    op.drop_index("ix_assignments_period_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_generation_runs_period_id", table_name="generation_runs")
    op.drop_table("generation_runs")
    op.drop_table("restriction_rules")
    op.drop_index("ix_course_sections_period_id", table_name="course_sections")
    op.drop_index("ix_course_sections_subject_id", table_name="course_sections")
    op.drop_table("course_sections")
    op.drop_table("subject_specialties")
    op.drop_index("ix_subjects_career_id", table_name="subjects")
    op.drop_index("ix_subjects_code", table_name="subjects")
    op.drop_table("subjects")
    op.drop_index("ix_rooms_code", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_teacher_availability_period_id", table_name="teacher_availability")
    op.drop_index("ix_teacher_availability_teacher_id", table_name="teacher_availability")
    op.drop_table("teacher_availability")
    op.drop_table("teacher_specialties")
    op.drop_index("ix_teachers_email", table_name="teachers")
    op.drop_table("teachers")
    op.drop_index("ix_specialties_code", table_name="specialties")
    op.drop_table("specialties")
    op.drop_table("time_blocks")
    op.drop_table("academic_periods")

    bind = op.get_bind()
    for name in ("assignment_status", "restriction_scope", "teacher_status", "shift"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
