from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator

from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.commitments import Candidate
from academic_scheduler.services.constraints import (
    ValidationContext,
    daily_hour_cap_respected,
    restriction_rule_satisfied,
    room_suitable,
    specialty_match,
    teacher_available,
    weekly_hour_cap_respected,
)
from academic_scheduler.services.snapshot import DomainSnapshot, RoomInfo, SectionInfo, TeacherInfo

logger = logging.getLogger(__name__)

NO_QUALIFIED_TEACHER = "sin_docente_calificado"
NO_SUITABLE_ROOM = "sin_aula_adecuada"
NO_AVAILABLE_SLOT = "sin_disponibilidad"
EXCLUDED_BY_RESTRICTIONS = "excluido_por_restricciones"
EXCEEDS_HOUR_CAP = "excede_tope_horario"


@dataclass
class CandidateDiagnosis:
    qualified_teachers: int = 0
    suitable_rooms: int = 0
    available_slots: int = 0
    rejected: Counter = field(default_factory=Counter)
    reason: str | None = None

    def as_dict(self) -> dict:
        return {
            "docentes_calificados": self.qualified_teachers,
            "aulas_adecuadas": self.suitable_rooms,
            "franjas_disponibles": self.available_slots,
            "rechazos": dict(self.rejected),
            "causa": self.reason,
        }


@dataclass(frozen=True)
class RoomGroup:
    """Rooms a section may use in one (weekday, block), closest capacity first."""

    weekday: int
    block_id: int
    room_ids: tuple[int, ...]


@dataclass(frozen=True)
class SlotOption:
    """A teacher in a (weekday, block); the room is picked when committing."""

    weekday: int
    block_id: int
    teacher_id: int
    group: int

    def with_room(self, room_id: int) -> Candidate:
        return Candidate(weekday=self.weekday, block_id=self.block_id, teacher_id=self.teacher_id, room_id=room_id)


@dataclass
class SectionCandidates:
    section: SectionInfo
    options: tuple[SlotOption, ...]
    room_groups: tuple[RoomGroup, ...]
    diagnosis: CandidateDiagnosis

    @property
    def is_placeable(self) -> bool:
        return bool(self.options)

    @property
    def candidate_count(self) -> int:
        return sum(len(self.room_groups[option.group].room_ids) for option in self.options)

    def rooms_for(self, option: SlotOption) -> tuple[int, ...]:
        return self.room_groups[option.group].room_ids

    def candidates(self) -> Iterator[Candidate]:
        """Every (weekday, block, teacher, room) the section may take."""
        for option in self.options:
            for room_id in self.rooms_for(option):
                yield option.with_room(room_id)


def qualified_teachers(ctx: ValidationContext, section: SectionInfo) -> list[TeacherInfo]:
    """Teachers allowed to teach ``section`` before looking at time or rooms."""
    if section.pinned_teacher_id is not None:
        pinned = ctx.snapshot.teachers.get(section.pinned_teacher_id)
        return [pinned] if pinned is not None else []
    probe_block = ctx.snapshot.blocks[0].id if ctx.snapshot.blocks else 0
    return [
        teacher
        for teacher in sorted(ctx.snapshot.teachers.values(), key=lambda item: item.id)
        if specialty_match(ctx, section, Candidate(weekday=0, block_id=probe_block, teacher_id=teacher.id, room_id=0))
    ]


def suitable_rooms(ctx: ValidationContext, section: SectionInfo) -> list[RoomInfo]:
    """Every room that fits the section, closest capacity first."""
    probe_block = ctx.snapshot.blocks[0].id if ctx.snapshot.blocks else 0
    rooms = [
        room
        for room in ctx.snapshot.rooms.values()
        if room_suitable(ctx, section, Candidate(weekday=0, block_id=probe_block, teacher_id=0, room_id=room.id))
    ]
    return sorted(rooms, key=lambda room: (room.capacity - section.enrollment, room.name, room.id))


def generate_candidates(
    snapshot: DomainSnapshot,
    section: SectionInfo,
    config: GenerationConfig,
) -> SectionCandidates:
    ctx = ValidationContext(snapshot=snapshot, config=config)
    diagnosis = CandidateDiagnosis()

    teachers = qualified_teachers(ctx, section)
    diagnosis.qualified_teachers = len(teachers)
    rooms = suitable_rooms(ctx, section)
    diagnosis.suitable_rooms = len(rooms)
    room_ids = tuple(room.id for room in rooms)

    options: list[SlotOption] = []
    groups: dict[RoomGroup, int] = {}
    if teachers and rooms:
        for weekday in snapshot.teaching_days:
            for block in snapshot.day_blocks.get(weekday, ()):
                for teacher in teachers:
                    slot = Candidate(weekday=weekday, block_id=block.id, teacher_id=teacher.id, room_id=room_ids[0])
                    if not teacher_available(ctx, section, slot):
                        continue
                    diagnosis.available_slots += 1
                    if not daily_hour_cap_respected(ctx, section, slot):
                        diagnosis.rejected["daily_hour_cap_respected"] += 1
                        continue
                    if not weekly_hour_cap_respected(ctx, section, slot):
                        diagnosis.rejected["weekly_hour_cap_respected"] += 1
                        continue
                    allowed = room_ids
                    if snapshot.restrictions:
                        allowed = tuple(
                            room_id
                            for room_id in room_ids
                            if restriction_rule_satisfied(
                                ctx,
                                section,
                                Candidate(weekday=weekday, block_id=block.id, teacher_id=teacher.id, room_id=room_id),
                            )
                        )
                        excluded = len(room_ids) - len(allowed)
                        if excluded:
                            diagnosis.rejected["restriction_rule_satisfied"] += excluded
                    if not allowed:
                        continue
                    group = groups.setdefault(RoomGroup(weekday, block.id, allowed), len(groups))
                    options.append(SlotOption(weekday=weekday, block_id=block.id, teacher_id=teacher.id, group=group))

    if not options:
        diagnosis.reason = _infeasibility_reason(diagnosis)
        logger.warning(
            "Section %s (%s) has no feasible candidates: %s",
            section.id,
            section.code,
            diagnosis.reason,
        )
    return SectionCandidates(
        section=section,
        options=tuple(options),
        room_groups=tuple(groups),
        diagnosis=diagnosis,
    )


def _infeasibility_reason(diagnosis: CandidateDiagnosis) -> str:
    if diagnosis.qualified_teachers == 0:
        return NO_QUALIFIED_TEACHER
    if diagnosis.suitable_rooms == 0:
        return NO_SUITABLE_ROOM
    if diagnosis.available_slots == 0:
        return NO_AVAILABLE_SLOT
    if diagnosis.rejected.get("restriction_rule_satisfied"):
        return EXCLUDED_BY_RESTRICTIONS
    return EXCEEDS_HOUR_CAP


def build_candidate_table(snapshot: DomainSnapshot, config: GenerationConfig) -> dict[int, SectionCandidates]:
    table = {section.id: generate_candidates(snapshot, section, config) for section in snapshot.sections}
    unplaceable = sum(1 for item in table.values() if not item.is_placeable)
    logger.info(
        "Candidate table built period_id=%s sections=%s unplaceable=%s options=%s",
        snapshot.period.id,
        len(table),
        unplaceable,
        sum(len(item.options) for item in table.values()),
    )
    return table
