from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from academic_scheduler.services.snapshot import DomainSnapshot


@dataclass(frozen=True, order=True)
class Candidate:
    weekday: int
    block_id: int
    teacher_id: int
    room_id: int


class CommitmentLedger:
    """Provisional placements of a single search, with explicit undo.

    Every index is keyed by (resource, weekday, block) so the validator can
    answer double-booking questions with dictionary lookups.
    An optional ``observer`` is told about every record and unrecord.
    """

    def __init__(self, snapshot: DomainSnapshot) -> None:
        self.snapshot = snapshot
        self.teacher_slots: dict[tuple[int, int, int], int] = {}
        self.room_slots: dict[tuple[int, int, int], int] = {}
        self.section_slots: dict[tuple[int, int, int], Candidate] = {}
        self.section_teacher: dict[int, int] = {}
        self.placements: dict[int, list[Candidate]] = defaultdict(list)
        self.teacher_day_minutes: dict[tuple[int, int], int] = defaultdict(int)
        self.teacher_week_minutes: dict[int, int] = defaultdict(int)
        self.teacher_day_positions: dict[tuple[int, int], set[int]] = defaultdict(set)
        self.section_day_counts: dict[tuple[int, int], int] = defaultdict(int)
        self.total = 0
        self.observer = None

    def record(self, section_id: int, candidate: Candidate) -> None:
        block = self.snapshot.blocks_by_id[candidate.block_id]
        position = self.snapshot.block_position(candidate.weekday, candidate.block_id)

        self.teacher_slots[(candidate.teacher_id, candidate.weekday, candidate.block_id)] = section_id
        self.room_slots[(candidate.room_id, candidate.weekday, candidate.block_id)] = section_id
        self.section_slots[(section_id, candidate.weekday, candidate.block_id)] = candidate
        self.section_teacher.setdefault(section_id, candidate.teacher_id)
        self.placements[section_id].append(candidate)
        self.teacher_day_minutes[(candidate.teacher_id, candidate.weekday)] += block.duration_minutes
        self.teacher_week_minutes[candidate.teacher_id] += block.duration_minutes
        if position is not None:
            self.teacher_day_positions[(candidate.teacher_id, candidate.weekday)].add(position)
        self.section_day_counts[(section_id, candidate.weekday)] += 1
        self.total += 1
        if self.observer is not None:
            self.observer.ledger_changed(candidate, taken=True)

    def unrecord(self, section_id: int, candidate: Candidate) -> None:
        block = self.snapshot.blocks_by_id[candidate.block_id]
        position = self.snapshot.block_position(candidate.weekday, candidate.block_id)

        self.teacher_slots.pop((candidate.teacher_id, candidate.weekday, candidate.block_id), None)
        self.room_slots.pop((candidate.room_id, candidate.weekday, candidate.block_id), None)
        self.section_slots.pop((section_id, candidate.weekday, candidate.block_id), None)

        placed = self.placements.get(section_id, [])
        if candidate in placed:
            placed.remove(candidate)
        if not placed:
            self.placements.pop(section_id, None)
            self.section_teacher.pop(section_id, None)

        day_key = (candidate.teacher_id, candidate.weekday)
        remaining = self.teacher_day_minutes.get(day_key, 0) - block.duration_minutes
        if remaining > 0:
            self.teacher_day_minutes[day_key] = remaining
        else:
            self.teacher_day_minutes.pop(day_key, None)

        week_remaining = self.teacher_week_minutes.get(candidate.teacher_id, 0) - block.duration_minutes
        if week_remaining > 0:
            self.teacher_week_minutes[candidate.teacher_id] = week_remaining
        else:
            self.teacher_week_minutes.pop(candidate.teacher_id, None)

        positions = self.teacher_day_positions.get(day_key)
        if positions is not None and position is not None:
            positions.discard(position)
            if not positions:
                self.teacher_day_positions.pop(day_key, None)

        section_day_key = (section_id, candidate.weekday)
        count = self.section_day_counts.get(section_day_key, 0) - 1
        if count > 0:
            self.section_day_counts[section_day_key] = count
        else:
            self.section_day_counts.pop(section_day_key, None)
        self.total -= 1
        if self.observer is not None:
            self.observer.ledger_changed(candidate, taken=False)

    def placed_count(self, section_id: int) -> int:
        return len(self.placements.get(section_id, ()))

    def positions_for(self, teacher_id: int, weekday: int) -> set[int]:
        return self.teacher_day_positions.get((teacher_id, weekday), set())

    def frozen_placements(self) -> dict[int, tuple[Candidate, ...]]:
        return {section_id: tuple(items) for section_id, items in self.placements.items() if items}


def ledger_from_placements(
    snapshot: DomainSnapshot,
    placements: dict[int, tuple[Candidate, ...]],
) -> CommitmentLedger:
    ledger = CommitmentLedger(snapshot)
    for section_id, candidates in placements.items():
        for candidate in candidates:
            ledger.record(section_id, candidate)
    return ledger
