from __future__ import annotations

from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.commitments import Candidate, CommitmentLedger
from academic_scheduler.services.snapshot import DomainSnapshot, SectionInfo

SHIFT_BONUS = 3.0
GAP_PENALTY = 2.0
SAME_DAY_PENALTY = 1.0


def idle_blocks(positions: set[int]) -> int:
    if not positions:
        return 0
    return (max(positions) - min(positions) + 1) - len(positions)


def gap_delta(snapshot: DomainSnapshot, ledger: CommitmentLedger, candidate: Candidate) -> int:
    """Idle blocks added to the teacher's day by placing ``candidate``."""
    position = snapshot.block_position(candidate.weekday, candidate.block_id)
    if position is None:
        return 0
    current = ledger.positions_for(candidate.teacher_id, candidate.weekday)
    if not current:
        return 0
    return max(0, idle_blocks(current | {position}) - idle_blocks(current))


def teacher_preference(snapshot: DomainSnapshot, candidate: Candidate) -> int:
    record = snapshot.slot_availability(candidate.teacher_id, candidate.weekday, candidate.block_id)
    return record.preference if record is not None else 0


def room_fit(snapshot: DomainSnapshot, section: SectionInfo, candidate: Candidate) -> float:
    room = snapshot.rooms.get(candidate.room_id)
    if room is None or room.capacity <= 0:
        return 0.0
    return min(1.0, max(section.enrollment, 1) / room.capacity)


def shift_matches(
    snapshot: DomainSnapshot,
    section: SectionInfo,
    candidate: Candidate,
    config: GenerationConfig,
) -> bool:
    shift = snapshot.blocks_by_id[candidate.block_id].shift
    return shift in {section.preferred_shift, config.turno_preferente} - {None}


def score_candidate(
    snapshot: DomainSnapshot,
    ledger: CommitmentLedger,
    section: SectionInfo,
    candidate: Candidate,
    config: GenerationConfig,
) -> float:
    score = config.prioridad_docente * teacher_preference(snapshot, candidate)
    score += config.prioridad_aula * room_fit(snapshot, section, candidate)
    if shift_matches(snapshot, section, candidate, config):
        score += SHIFT_BONUS
    if not config.permitir_huecos:
        score -= GAP_PENALTY * gap_delta(snapshot, ledger, candidate)
    score -= SAME_DAY_PENALTY * ledger.section_day_counts.get((section.id, candidate.weekday), 0)
    return score


def rank_candidates(
    snapshot: DomainSnapshot,
    ledger: CommitmentLedger,
    section: SectionInfo,
    candidates: list[Candidate],
    config: GenerationConfig,
) -> list[Candidate]:
    def sort_key(candidate: Candidate) -> tuple:
        return (
            -score_candidate(snapshot, ledger, section, candidate, config),
            candidate.weekday,
            snapshot.block_position(candidate.weekday, candidate.block_id) or 0,
            candidate.teacher_id,
            candidate.room_id,
        )

    return sorted(candidates, key=sort_key)
