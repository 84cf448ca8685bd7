from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from academic_scheduler.core.config import Settings
from academic_scheduler.core.exceptions import ResourceNotFoundError
from academic_scheduler.models.period import AcademicPeriod
from academic_scheduler.models.teacher import Teacher, TeacherAvailability
from academic_scheduler.models.time_block import TimeBlock
from academic_scheduler.schemas.availability import AvailabilityMergeOut, AvailabilitySlotsIn, TimeRangeOut
from academic_scheduler.schemas.common import parse_time_to_minutes
from academic_scheduler.services.intervals import (
    coalesce_ranges,
    find_overlaps,
    format_range,
    merge_slot_indices,
    merge_with_existing,
    range_contains,
    runs_to_time_ranges,
)

logger = logging.getLogger(__name__)


def _block_range(block: TimeBlock) -> tuple[int, int]:
    return parse_time_to_minutes(block.start_time), parse_time_to_minutes(block.end_time)


def store_availability_slots(
    db: Session,
    *,
    teacher_id: int,
    payload: AvailabilitySlotsIn,
    settings: Settings,
) -> AvailabilityMergeOut:
    """Turn selected grid cells into per-block availability records."""
    if db.get(Teacher, teacher_id) is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    if db.get(AcademicPeriod, payload.periodo_id) is None:
        raise ResourceNotFoundError("Academic period", payload.periodo_id)

    new_ranges = runs_to_time_ranges(
        merge_slot_indices(payload.franjas),
        grid_start=parse_time_to_minutes(settings.availability_grid_start),
        slot_minutes=settings.availability_slot_minutes,
    )

    blocks = {
        block.id: block
        for block in db.execute(
            select(TimeBlock).where(or_(TimeBlock.weekday.is_(None), TimeBlock.weekday == payload.dia_semana))
        ).scalars()
    }
    records = {
        record.block_id: record
        for record in db.execute(
            select(TeacherAvailability).where(
                TeacherAvailability.teacher_id == teacher_id,
                TeacherAvailability.period_id == payload.periodo_id,
                TeacherAvailability.weekday == payload.dia_semana,
            )
        ).scalars()
    }
    existing_ranges = coalesce_ranges(
        _block_range(blocks[block_id])
        for block_id, record in records.items()
        if record.is_available and block_id in blocks
    )

    merged = merge_with_existing(new_ranges, existing_ranges, payload.politica)

    covered: list[int] = []
    created = 0
    updated = 0
    for block in sorted(blocks.values(), key=lambda item: (item.start_time, item.id)):
        start, end = _block_range(block)
        if not any(range_contains(item, start, end) for item in merged):
            continue
        if not find_overlaps([(start, end)], new_ranges):
            continue
        covered.append(block.id)
        record = records.get(block.id)
        if record is None:
            db.add(
                TeacherAvailability(
                    teacher_id=teacher_id,
                    period_id=payload.periodo_id,
                    weekday=payload.dia_semana,
                    block_id=block.id,
                    is_available=True,
                    preference=payload.preferencia,
                )
            )
            created += 1
        elif not record.is_available or record.preference != payload.preferencia:
            record.is_available = True
            record.preference = payload.preferencia
            updated += 1

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Stored availability teacher_id=%s period_id=%s weekday=%s ranges=%s created=%s updated=%s",
        teacher_id,
        payload.periodo_id,
        payload.dia_semana,
        len(merged),
        created,
        updated,
    )
    return AvailabilityMergeOut(
        docente_id=teacher_id,
        periodo_id=payload.periodo_id,
        dia_semana=payload.dia_semana,
        rangos=[TimeRangeOut(**format_range(item)) for item in merged],
        bloques=covered,
        creados=created,
        actualizados=updated,
    )
