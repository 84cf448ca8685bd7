from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum

from academic_scheduler.schemas.generator import GenerationConfig, SectionConflictOut
from academic_scheduler.services.commitments import Candidate, ledger_from_placements
from academic_scheduler.services.constraints import DYNAMIC_PREDICATES, ValidationContext, violations
from academic_scheduler.services.snapshot import DomainSnapshot, SectionInfo
from academic_scheduler.services.solver import SolverOutcome, StopReason


class ConflictReason(str, Enum):
    no_candidates = "sin_candidatos"
    contention = "recursos_ocupados"
    budget = "presupuesto_agotado"
    cancelled = "cancelado"


# Most informative first.
REASON_PRIORITY = (
    ConflictReason.no_candidates,
    ConflictReason.contention,
    ConflictReason.budget,
    ConflictReason.cancelled,
)

REASON_DESCRIPTIONS = {
    ConflictReason.no_candidates: "No existe ninguna combinacion de docente, aula y bloque que cumpla las restricciones",
    ConflictReason.contention: "Los docentes, aulas o bloques posibles quedaron ocupados por otros grupos",
    ConflictReason.budget: "La busqueda agoto su presupuesto antes de ubicar el grupo",
    ConflictReason.cancelled: "La generacion fue cancelada antes de ubicar el grupo",
}


@dataclass
class SectionConflict:
    section: SectionInfo
    reasons: list[ConflictReason]
    placed_blocks: int
    details: dict = field(default_factory=dict)

    @property
    def reason(self) -> ConflictReason:
        return self.reasons[0]

    @property
    def description(self) -> str:
        return REASON_DESCRIPTIONS[self.reason]

    def to_schema(self) -> SectionConflictOut:
        return SectionConflictOut(
            grupo=self.section.id,
            codigo_grupo=self.section.code,
            motivo=self.reason.value,
            motivos=[item.value for item in self.reasons],
            descripcion=self.description,
            bloques_requeridos=self.section.required_blocks,
            bloques_asignados=self.placed_blocks,
            detalle=self.details,
        )


@dataclass
class ConflictReport:
    conflicts: list[SectionConflict]
    stop_reason: StopReason

    @property
    def count(self) -> int:
        return len(self.conflicts)

    def summary_status(self) -> str:
        if not self.conflicts:
            return "Completo"
        if self.stop_reason in {StopReason.budget, StopReason.cancelled}:
            return "Parcial"
        return "Con Conflictos"

    def by_section(self) -> dict[int, SectionConflict]:
        return {item.section.id: item for item in self.conflicts}


class ConflictReporter:
    """Explains every section the solver left without its full set of blocks."""

    def __init__(self, snapshot: DomainSnapshot, config: GenerationConfig, outcome: SolverOutcome):
        self.snapshot = snapshot
        self.config = config
        self.outcome = outcome
        self.ledger = ledger_from_placements(snapshot, outcome.placements)
        self.ctx = ValidationContext(snapshot=snapshot, config=config, ledger=self.ledger)

    def build(self) -> ConflictReport:
        conflicts: list[SectionConflict] = []
        for section in self.snapshot.sections:
            placed = len(self.outcome.placements.get(section.id, ()))
            if placed >= section.required_blocks:
                continue
            conflicts.append(self._explain(section, placed))
        return ConflictReport(conflicts=conflicts, stop_reason=self.outcome.stop_reason)

    def _explain(self, section: SectionInfo, placed: int) -> SectionConflict:
        entry = self.outcome.candidate_table.get(section.id)
        if entry is None or not entry.is_placeable:
            details = entry.diagnosis.as_dict() if entry is not None else {}
            return SectionConflict(section, [ConflictReason.no_candidates], placed, details)

        rejected: Counter = Counter()
        free = 0
        for candidate in entry.candidates():
            failed = violations(self.ctx, section, candidate, DYNAMIC_PREDICATES)
            if failed:
                rejected.update(failed)
            else:
                free += 1
        details = {
            "candidatos": entry.candidate_count,
            "candidatos_libres": free,
            "rechazos": dict(rejected),
        }

        reasons: set[ConflictReason] = set()
        decided = section.id in self.outcome.decided_section_ids
        if decided or free == 0:
            reasons.add(ConflictReason.contention)
        if not decided:
            if self.outcome.stop_reason == StopReason.budget:
                reasons.add(ConflictReason.budget)
            elif self.outcome.stop_reason == StopReason.cancelled:
                reasons.add(ConflictReason.cancelled)
        if not reasons:
            reasons.add(ConflictReason.contention)
        ordered = [reason for reason in REASON_PRIORITY if reason in reasons]
        return SectionConflict(section, ordered, placed, details)


def audit_placements(
    snapshot: DomainSnapshot,
    placements: dict[int, tuple[Candidate, ...]],
) -> list[str]:
    """Return a description of every double booking found in ``placements``."""
    issues: list[str] = []
    teacher_slots: dict[tuple[int, int, int], list[int]] = defaultdict(list)
    room_slots: dict[tuple[int, int, int], list[int]] = defaultdict(list)
    section_slots: dict[tuple[int, int, int], list[int]] = defaultdict(list)
    section_teachers: dict[int, set[int]] = defaultdict(set)

    for section_id, candidates in placements.items():
        for candidate in candidates:
            teacher_slots[(candidate.teacher_id, candidate.weekday, candidate.block_id)].append(section_id)
            room_slots[(candidate.room_id, candidate.weekday, candidate.block_id)].append(section_id)
            section_slots[(section_id, candidate.weekday, candidate.block_id)].append(section_id)
            section_teachers[section_id].add(candidate.teacher_id)
            record = snapshot.slot_availability(candidate.teacher_id, candidate.weekday, candidate.block_id)
            if record is None or not record.is_available:
                issues.append(
                    f"Teacher {candidate.teacher_id} is not available on weekday {candidate.weekday} "
                    f"block {candidate.block_id} (section {section_id})"
                )

    for (teacher_id, weekday, block_id), sections in teacher_slots.items():
        if len(sections) > 1:
            issues.append(f"Teacher {teacher_id} double booked on weekday {weekday} block {block_id}: {sections}")
    for (room_id, weekday, block_id), sections in room_slots.items():
        if len(sections) > 1:
            issues.append(f"Room {room_id} double booked on weekday {weekday} block {block_id}: {sections}")
    for (section_id, weekday, block_id), sections in section_slots.items():
        if len(sections) > 1:
            issues.append(f"Section {section_id} placed twice on weekday {weekday} block {block_id}")
    for section_id, teachers in section_teachers.items():
        if len(teachers) > 1:
            issues.append(f"Section {section_id} split across teachers {sorted(teachers)}")
    return issues
