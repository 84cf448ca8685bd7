"""Read-only view of the academic data for one generation run.

The engine never talks to SQLAlchemy directly: a :class:`SnapshotRepository`
hands it a :class:`DomainSnapshot`, an immutable bundle of plain dataclasses
that can be shared across threads and built by hand in tests.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping, Protocol

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from academic_scheduler.core.exceptions import ResourceNotFoundError, SnapshotError
from academic_scheduler.models.course import CourseSection
from academic_scheduler.models.period import AcademicPeriod
from academic_scheduler.models.restriction import RestrictionRule
from academic_scheduler.models.room import Room
from academic_scheduler.models.teacher import Teacher, TeacherAvailability, TeacherStatus
from academic_scheduler.models.time_block import TimeBlock
from academic_scheduler.schemas.common import SHIFT_VALUES, parse_time_to_minutes

logger = logging.getLogger(__name__)

RESTRICTION_SCOPES = {"GLOBAL", "DOCENTE", "MATERIA", "AULA", "CARRERA", "PERIODO"}
INT_PARAMETER_CODES = {"MAX_BLOQUE", "MIN_BLOQUE", "DIA_EXCLUIDO", "BLOQUE_EXCLUIDO"}
ENTITY_PARAMETER_CODES = {"AULA_EXCLUIDA", "DOCENTE_EXCLUIDO"}
RESTRICTION_CODES = INT_PARAMETER_CODES | ENTITY_PARAMETER_CODES | {"TURNO_EXCLUIDO"}


@dataclass(frozen=True)
class PeriodInfo:
    id: int
    name: str
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True


@dataclass(frozen=True)
class BlockInfo:
    id: int
    name: str
    start: int
    end: int
    shift: str
    weekday: int | None = None

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class TeacherInfo:
    id: int
    name: str
    specialty_ids: frozenset[int] = frozenset()
    max_weekly_hours: int | None = None
    max_daily_hours: int | None = None


@dataclass(frozen=True)
class RoomInfo:
    id: int
    name: str
    capacity: int
    room_type: str = "aula"
    academic_unit_id: int | None = None


@dataclass(frozen=True)
class SectionInfo:
    id: int
    code: str
    subject_id: int
    required_blocks: int
    enrollment: int = 0
    career_id: int | None = None
    preferred_shift: str | None = None
    pinned_teacher_id: int | None = None
    required_specialty_ids: frozenset[int] = frozenset()
    required_room_type: str | None = None


@dataclass(frozen=True)
class AvailabilityInfo:
    teacher_id: int
    weekday: int
    block_id: int
    is_available: bool = True
    preference: int = 0


@dataclass(frozen=True)
class RestrictionInfo:
    id: int
    code: str
    scope: str
    entity_id_1: int | None = None
    entity_id_2: int | None = None
    value: int | str | None = None
    period_id: int | None = None
    description: str = ""


def required_blocks_for_hours(total_hours: int, hours_per_block: float) -> int:
    if hours_per_block <= 0:
        raise SnapshotError("hours_per_block must be positive")
    return max(1, math.ceil(total_hours / hours_per_block))


def parse_restriction(
    *,
    rule_id: int,
    code: str,
    scope: str,
    entity_id_1: int | None,
    entity_id_2: int | None,
    parameter_value: str | None,
    period_id: int | None = None,
    description: str = "",
) -> RestrictionInfo:
    normalized_code = (code or "").strip().upper()
    normalized_scope = (scope or "").strip().upper()
    details = {"restriccion_id": rule_id, "codigo": code}
    if normalized_code not in RESTRICTION_CODES:
        raise SnapshotError(f"Unknown restriction code '{code}'", details=details)
    if normalized_scope not in RESTRICTION_SCOPES:
        raise SnapshotError(f"Unknown restriction scope '{scope}'", details=details)
    if normalized_scope != "GLOBAL" and entity_id_1 is None:
        raise SnapshotError(f"Restriction {rule_id} with scope {normalized_scope} needs entity_id_1", details=details)

    value: int | str | None = None
    raw = (parameter_value or "").strip()
    if normalized_code in INT_PARAMETER_CODES:
        try:
            value = int(raw)
        except ValueError as exc:
            raise SnapshotError(
                f"Restriction {rule_id} ({normalized_code}) needs an integer parameter",
                details=details,
            ) from exc
        if normalized_code == "DIA_EXCLUIDO" and not 1 <= value <= 7:
            raise SnapshotError(f"Restriction {rule_id} weekday must be between 1 and 7", details=details)
    elif normalized_code == "TURNO_EXCLUIDO":
        value = raw.upper()
        if value not in SHIFT_VALUES:
            raise SnapshotError(f"Restriction {rule_id} shift must be one of M, T, N", details=details)
    elif entity_id_2 is None:
        raise SnapshotError(f"Restriction {rule_id} ({normalized_code}) needs entity_id_2", details=details)

    return RestrictionInfo(
        id=rule_id,
        code=normalized_code,
        scope=normalized_scope,
        entity_id_1=entity_id_1,
        entity_id_2=entity_id_2,
        value=value,
        period_id=period_id,
        description=description,
    )


@dataclass(frozen=True)
class DomainSnapshot:
    period: PeriodInfo
    blocks: tuple[BlockInfo, ...]
    teachers: Mapping[int, TeacherInfo]
    rooms: Mapping[int, RoomInfo]
    sections: tuple[SectionInfo, ...]
    availability: Mapping[tuple[int, int, int], AvailabilityInfo]
    restrictions: tuple[RestrictionInfo, ...] = ()
    teaching_days: tuple[int, ...] = (1, 2, 3, 4, 5, 6)

    blocks_by_id: Mapping[int, BlockInfo] = field(init=False, repr=False)
    day_blocks: Mapping[int, tuple[BlockInfo, ...]] = field(init=False, repr=False)
    block_positions: Mapping[tuple[int, int], int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        blocks_by_id = {block.id: block for block in self.blocks}
        day_blocks: dict[int, tuple[BlockInfo, ...]] = {}
        positions: dict[tuple[int, int], int] = {}
        for weekday in self.teaching_days:
            applicable = sorted(
                (block for block in self.blocks if block.weekday is None or block.weekday == weekday),
                key=lambda block: (block.start, block.end, block.id),
            )
            for previous, current in zip(applicable, applicable[1:]):
                if current.start < previous.end:
                    raise SnapshotError(
                        f"Time blocks {previous.name} and {current.name} overlap on weekday {weekday}",
                        details={"dia_semana": weekday, "bloques": [previous.id, current.id]},
                    )
            day_blocks[weekday] = tuple(applicable)
            for index, block in enumerate(applicable, start=1):
                positions[(weekday, block.id)] = index

        object.__setattr__(self, "teachers", MappingProxyType(dict(self.teachers)))
        object.__setattr__(self, "rooms", MappingProxyType(dict(self.rooms)))
        object.__setattr__(self, "availability", MappingProxyType(dict(self.availability)))
        object.__setattr__(self, "blocks_by_id", MappingProxyType(blocks_by_id))
        object.__setattr__(self, "day_blocks", MappingProxyType(day_blocks))
        object.__setattr__(self, "block_positions", MappingProxyType(positions))

    @classmethod
    def build(
        cls,
        *,
        period: PeriodInfo,
        blocks: list[BlockInfo],
        teachers: list[TeacherInfo],
        rooms: list[RoomInfo],
        sections: list[SectionInfo],
        availability: list[AvailabilityInfo],
        restrictions: list[RestrictionInfo] | None = None,
        teaching_days: list[int] | tuple[int, ...] = (1, 2, 3, 4, 5, 6),
    ) -> "DomainSnapshot":
        for block in blocks:
            if block.end <= block.start:
                raise SnapshotError(f"Time block {block.name} ends before it starts", details={"bloque": block.id})
            if block.shift not in SHIFT_VALUES:
                raise SnapshotError(f"Time block {block.name} has an invalid shift", details={"bloque": block.id})
        return cls(
            period=period,
            blocks=tuple(sorted(blocks, key=lambda block: (block.start, block.id))),
            teachers={teacher.id: teacher for teacher in teachers},
            rooms={room.id: room for room in rooms},
            sections=tuple(sorted(sections, key=lambda section: section.id)),
            availability={(item.teacher_id, item.weekday, item.block_id): item for item in availability},
            restrictions=tuple(restrictions or ()),
            teaching_days=tuple(sorted(set(teaching_days))),
        )

    def block_position(self, weekday: int, block_id: int) -> int | None:
        return self.block_positions.get((weekday, block_id))

    def slot_availability(self, teacher_id: int, weekday: int, block_id: int) -> AvailabilityInfo | None:
        return self.availability.get((teacher_id, weekday, block_id))

    def section(self, section_id: int) -> SectionInfo:
        for item in self.sections:
            if item.id == section_id:
                return item
        raise KeyError(section_id)


class SnapshotRepository(Protocol):
    def load(self, period_id: int) -> DomainSnapshot:
        ...


class SqlAlchemySnapshotRepository:
    """Loads a :class:`DomainSnapshot` for one period from the relational store."""

    def __init__(self, db: Session, *, teaching_days: list[int], hours_per_block: float = 1.0) -> None:
        self.db = db
        self.teaching_days = teaching_days
        self.hours_per_block = hours_per_block

    def load(self, period_id: int) -> DomainSnapshot:
        period = self.db.get(AcademicPeriod, period_id)
        if period is None:
            raise ResourceNotFoundError("Academic period", period_id)
        if not period.is_active:
            logger.warning("Generating timetable for inactive period_id=%s", period_id)

        blocks = [
            BlockInfo(
                id=block.id,
                name=block.name,
                start=parse_time_to_minutes(block.start_time),
                end=parse_time_to_minutes(block.end_time),
                shift=block.shift.value,
                weekday=block.weekday,
            )
            for block in self.db.execute(select(TimeBlock)).scalars()
        ]

        teachers = [
            TeacherInfo(
                id=teacher.id,
                name=f"{teacher.first_names} {teacher.last_names}".strip(),
                specialty_ids=frozenset(item.id for item in teacher.specialties),
                max_weekly_hours=teacher.max_weekly_hours,
                max_daily_hours=teacher.max_daily_hours,
            )
            for teacher in self.db.execute(
                select(Teacher).where(Teacher.status == TeacherStatus.active)
            ).scalars()
        ]

        rooms = [
            RoomInfo(
                id=room.id,
                name=room.name,
                capacity=room.capacity,
                room_type=room.room_type,
                academic_unit_id=room.academic_unit_id,
            )
            for room in self.db.execute(select(Room).where(Room.is_available.is_(True))).scalars()
        ]

        sections: list[SectionInfo] = []
        for section in self.db.execute(
            select(CourseSection).where(CourseSection.period_id == period_id)
        ).scalars():
            subject = section.subject
            total_hours = subject.theory_hours + subject.practice_hours + subject.lab_hours
            sections.append(
                SectionInfo(
                    id=section.id,
                    code=section.code,
                    subject_id=subject.id,
                    required_blocks=required_blocks_for_hours(total_hours, self.hours_per_block),
                    enrollment=section.estimated_enrollment,
                    career_id=subject.career_id,
                    preferred_shift=section.preferred_shift.value if section.preferred_shift else None,
                    pinned_teacher_id=section.pinned_teacher_id,
                    required_specialty_ids=frozenset(item.id for item in subject.specialties),
                    required_room_type=subject.required_room_type,
                )
            )

        availability = [
            AvailabilityInfo(
                teacher_id=record.teacher_id,
                weekday=record.weekday,
                block_id=record.block_id,
                is_available=record.is_available,
                preference=record.preference,
            )
            for record in self.db.execute(
                select(TeacherAvailability).where(TeacherAvailability.period_id == period_id)
            ).scalars()
        ]

        restrictions = [
            parse_restriction(
                rule_id=rule.id,
                code=rule.code,
                scope=rule.scope.value,
                entity_id_1=rule.entity_id_1,
                entity_id_2=rule.entity_id_2,
                parameter_value=rule.parameter_value,
                period_id=rule.period_id,
                description=rule.description,
            )
            for rule in self.db.execute(
                select(RestrictionRule).where(
                    RestrictionRule.is_active.is_(True),
                    or_(RestrictionRule.period_id.is_(None), RestrictionRule.period_id == period_id),
                )
            ).scalars()
        ]

        logger.info(
            "Loaded snapshot period_id=%s sections=%s teachers=%s rooms=%s blocks=%s restrictions=%s",
            period_id,
            len(sections),
            len(teachers),
            len(rooms),
            len(blocks),
            len(restrictions),
        )
        return DomainSnapshot.build(
            period=PeriodInfo(
                id=period.id,
                name=period.name,
                start_date=period.start_date,
                end_date=period.end_date,
                is_active=period.is_active,
            ),
            blocks=blocks,
            teachers=teachers,
            rooms=rooms,
            sections=sections,
            availability=availability,
            restrictions=restrictions,
            teaching_days=self.teaching_days,
        )
