"""Hard-constraint predicates.

Each predicate answers one question about placing ``candidate`` for
``section`` and can be called on its own. Predicates that depend on search
state read it from ``ctx.ledger`` and treat a missing ledger as an empty one,
which is how the candidate generator calls them before search starts.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.commitments import Candidate, CommitmentLedger
from academic_scheduler.services.snapshot import DomainSnapshot, RestrictionInfo, SectionInfo


@dataclass
class ValidationContext:
    snapshot: DomainSnapshot
    config: GenerationConfig
    ledger: CommitmentLedger | None = None


Predicate = Callable[[ValidationContext, SectionInfo, Candidate], bool]


def no_teacher_double_booking(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if ctx.ledger is None:
        return True
    return (candidate.teacher_id, candidate.weekday, candidate.block_id) not in ctx.ledger.teacher_slots


def no_room_double_booking(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if ctx.ledger is None:
        return True
    return (candidate.room_id, candidate.weekday, candidate.block_id) not in ctx.ledger.room_slots


def no_section_double_booking(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if ctx.ledger is None:
        return True
    return (section.id, candidate.weekday, candidate.block_id) not in ctx.ledger.section_slots


def section_teacher_consistent(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if ctx.ledger is None:
        return True
    assigned = ctx.ledger.section_teacher.get(section.id)
    return assigned is None or assigned == candidate.teacher_id


def teacher_available(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if candidate.teacher_id not in ctx.snapshot.teachers:
        return False
    if ctx.snapshot.block_position(candidate.weekday, candidate.block_id) is None:
        return False
    record = ctx.snapshot.slot_availability(candidate.teacher_id, candidate.weekday, candidate.block_id)
    return record is not None and record.is_available


def specialty_match(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    if section.pinned_teacher_id is not None:
        return candidate.teacher_id == section.pinned_teacher_id
    if not section.required_specialty_ids:
        return True
    teacher = ctx.snapshot.teachers.get(candidate.teacher_id)
    if teacher is None:
        return False
    return bool(teacher.specialty_ids & section.required_specialty_ids)


def room_suitable(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    room = ctx.snapshot.rooms.get(candidate.room_id)
    if room is None:
        return False
    if room.capacity < section.enrollment:
        return False
    if section.required_room_type and room.room_type.lower() != section.required_room_type.lower():
        return False
    return True


def restriction_applies(
    rule: RestrictionInfo,
    snapshot: DomainSnapshot,
    section: SectionInfo,
    candidate: Candidate,
) -> bool:
    if rule.period_id is not None and rule.period_id != snapshot.period.id:
        return False
    if rule.scope == "GLOBAL":
        return True
    if rule.scope == "DOCENTE":
        return candidate.teacher_id == rule.entity_id_1
    if rule.scope == "MATERIA":
        return section.subject_id == rule.entity_id_1
    if rule.scope == "AULA":
        return candidate.room_id == rule.entity_id_1
    if rule.scope == "CARRERA":
        return section.career_id is not None and section.career_id == rule.entity_id_1
    if rule.scope == "PERIODO":
        return snapshot.period.id == rule.entity_id_1
    return False


def restriction_excludes(
    rule: RestrictionInfo,
    snapshot: DomainSnapshot,
    candidate: Candidate,
) -> bool:
    if rule.code in {"MAX_BLOQUE", "MIN_BLOQUE"}:
        position = snapshot.block_position(candidate.weekday, candidate.block_id)
        if position is None:
            return True
        if rule.code == "MAX_BLOQUE":
            return position > rule.value
        return position < rule.value
    if rule.code == "DIA_EXCLUIDO":
        return candidate.weekday == rule.value
    if rule.code == "BLOQUE_EXCLUIDO":
        return candidate.block_id == rule.value
    if rule.code == "TURNO_EXCLUIDO":
        return snapshot.blocks_by_id[candidate.block_id].shift == rule.value
    if rule.code == "AULA_EXCLUIDA":
        return candidate.room_id == rule.entity_id_2
    if rule.code == "DOCENTE_EXCLUIDO":
        return candidate.teacher_id == rule.entity_id_2
    return False


def restriction_rule_satisfied(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    for rule in ctx.snapshot.restrictions:
        if restriction_applies(rule, ctx.snapshot, section, candidate) and restriction_excludes(
            rule, ctx.snapshot, candidate
        ):
            return False
    return True


def daily_cap_minutes(ctx: ValidationContext, teacher_id: int) -> int:
    cap_hours = ctx.config.maximo_horas_diarias
    teacher = ctx.snapshot.teachers.get(teacher_id)
    if teacher is not None and teacher.max_daily_hours is not None:
        cap_hours = min(cap_hours, teacher.max_daily_hours)
    return cap_hours * 60


def daily_hour_cap_respected(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    block = ctx.snapshot.blocks_by_id[candidate.block_id]
    used = 0
    if ctx.ledger is not None:
        used = ctx.ledger.teacher_day_minutes.get((candidate.teacher_id, candidate.weekday), 0)
    return used + block.duration_minutes <= daily_cap_minutes(ctx, candidate.teacher_id)


def weekly_hour_cap_respected(ctx: ValidationContext, section: SectionInfo, candidate: Candidate) -> bool:
    teacher = ctx.snapshot.teachers.get(candidate.teacher_id)
    if teacher is None or teacher.max_weekly_hours is None:
        return True
    block = ctx.snapshot.blocks_by_id[candidate.block_id]
    used = 0
    if ctx.ledger is not None:
        used = ctx.ledger.teacher_week_minutes.get(candidate.teacher_id, 0)
    return used + block.duration_minutes <= teacher.max_weekly_hours * 60


# Checked once per candidate before search starts.
STATIC_PREDICATES: tuple[Predicate, ...] = (
    specialty_match,
    teacher_available,
    room_suitable,
    restriction_rule_satisfied,
    daily_hour_cap_respected,
    weekly_hour_cap_respected,
)

# Depend on what the search has already committed.
DYNAMIC_PREDICATES: tuple[Predicate, ...] = (
    no_teacher_double_booking,
    no_room_double_booking,
    no_section_double_booking,
    section_teacher_consistent,
    daily_hour_cap_respected,
    weekly_hour_cap_respected,
)

# DYNAMIC_PREDICATES split by whether the room matters, so a room is picked only
# once the teacher and slot are known to be free.
SLOT_PREDICATES: tuple[Predicate, ...] = (
    no_teacher_double_booking,
    no_section_double_booking,
    section_teacher_consistent,
    daily_hour_cap_respected,
    weekly_hour_cap_respected,
)
ROOM_PREDICATES: tuple[Predicate, ...] = (no_room_double_booking,)

ALL_PREDICATES: tuple[Predicate, ...] = (
    no_teacher_double_booking,
    no_room_double_booking,
    no_section_double_booking,
    section_teacher_consistent,
    teacher_available,
    specialty_match,
    room_suitable,
    restriction_rule_satisfied,
    daily_hour_cap_respected,
    weekly_hour_cap_respected,
)


def is_valid(
    ctx: ValidationContext,
    section: SectionInfo,
    candidate: Candidate,
    predicates: tuple[Predicate, ...] = ALL_PREDICATES,
) -> bool:
    return all(predicate(ctx, section, candidate) for predicate in predicates)


def violations(
    ctx: ValidationContext,
    section: SectionInfo,
    candidate: Candidate,
    predicates: tuple[Predicate, ...] = ALL_PREDICATES,
) -> list[str]:
    return [predicate.__name__ for predicate in predicates if not predicate(ctx, section, candidate)]
