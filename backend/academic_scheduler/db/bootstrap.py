from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection

import academic_scheduler.models  # noqa: F401
from academic_scheduler.core.config import get_settings
from academic_scheduler.db.base import Base
from academic_scheduler.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "academic_periods": {"id", "name", "is_active"},
    "time_blocks": {"id", "start_time", "end_time", "shift", "weekday"},
    "teachers": {"id", "status", "max_daily_hours", "max_weekly_hours"},
    "teacher_availability": {"id", "teacher_id", "period_id", "weekday", "block_id", "is_available", "preference"},
    "rooms": {"id", "capacity", "room_type", "is_available"},
    "subjects": {"id", "theory_hours", "practice_hours", "lab_hours", "required_room_type"},
    "course_sections": {"id", "subject_id", "period_id", "estimated_enrollment", "pinned_teacher_id"},
    "restriction_rules": {"id", "code", "scope", "entity_id_1", "entity_id_2", "parameter_value", "is_active"},
    "assignments": {"id", "section_id", "teacher_id", "room_id", "period_id", "weekday", "block_id", "status"},
    "generation_runs": {"id", "period_id", "summary_status", "run_state"},
}


def missing_schema_items(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_schema() -> None:
    settings = get_settings()
    try:
        if settings.auto_create_schema:
            Base.metadata.create_all(bind=engine)
        with engine.connect() as connection:
            missing_tables, missing_columns = missing_schema_items(connection)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Schema bootstrap failed")
        raise RuntimeError("Schema bootstrap failed") from exc

    if missing_tables or missing_columns:
        logger.warning(
            "Database schema incomplete missing_tables=%s missing_columns=%s",
            missing_tables,
            missing_columns,
        )
