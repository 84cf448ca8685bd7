"""Backtracking search that turns a candidate table into placements.

The search walks block requests section by section. A frame holds the ranked
slot options for one request and a cursor into them, so resuming a frame after
a backtrack continues with the next untried option. The room is picked when an
option is committed.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.candidates import SectionCandidates, SlotOption, build_candidate_table
from academic_scheduler.services.commitments import Candidate, CommitmentLedger
from academic_scheduler.services.constraints import ROOM_PREDICATES, SLOT_PREDICATES, ValidationContext, is_valid
from academic_scheduler.services.live_candidates import LiveCandidateIndex
from academic_scheduler.services.scoring import rank_candidates
from academic_scheduler.services.snapshot import DomainSnapshot, SectionInfo

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class RunState(str, Enum):
    pending = "Pending"
    running = "Running"
    completed = "Completed"
    partial = "PartialWithConflicts"
    failed = "Failed"


class StopReason(str, Enum):
    finished = "finished"
    budget = "budget"
    cancelled = "cancelled"


@dataclass(frozen=True)
class SolverLimits:
    max_iterations: int = 200_000
    time_limit_seconds: float = 20.0
    backtrack_limit: int = 25


@dataclass
class SolverOutcome:
    state: RunState
    stop_reason: StopReason
    placements: dict[int, tuple[Candidate, ...]]
    decided_section_ids: frozenset[int]
    candidate_table: dict[int, SectionCandidates]
    iterations: int = 0
    backtracks: int = 0
    elapsed_ms: int = 0

    @property
    def placed_blocks(self) -> int:
        return sum(len(items) for items in self.placements.values())

    def is_fully_placed(self, section: SectionInfo) -> bool:
        return len(self.placements.get(section.id, ())) >= section.required_blocks


@dataclass
class _Frame:
    section: SectionInfo
    block_index: int
    ranked: list[SlotOption] = field(default_factory=list)
    cursor: int = 0
    chosen: Candidate | None = None
    skipped: bool = False

    @property
    def closes_section(self) -> bool:
        return self.skipped or self.block_index + 1 >= self.section.required_blocks


class AssignmentSolver:
    """Single-use solver for one snapshot and configuration."""

    def __init__(
        self,
        snapshot: DomainSnapshot,
        config: GenerationConfig,
        *,
        limits: SolverLimits | None = None,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.snapshot = snapshot
        self.config = config
        self.limits = limits or SolverLimits()
        self.cancel_event = cancel_event
        self.progress = progress
        self.clock = clock
        self.state = RunState.pending

        self.ledger = CommitmentLedger(snapshot)
        self.ctx = ValidationContext(snapshot=snapshot, config=config, ledger=self.ledger)
        self.table: dict[int, SectionCandidates] = {}
        self.live: LiveCandidateIndex | None = None
        self._remaining: set[int] = set()
        self._infeasible_count = 0
        self._placeable_count = 0
        self._complete_sections = 0
        self._last_progress = -1
        self._started_at = 0.0

    def solve(self) -> SolverOutcome:
        if self.state != RunState.pending:
            raise RuntimeError("AssignmentSolver instances can only run once")
        self.state = RunState.running
        try:
            outcome = self._search()
        except Exception:
            self.state = RunState.failed
            logger.exception("Solver failed for period_id=%s", self.snapshot.period.id)
            raise
        self.state = outcome.state
        return outcome

    def _search(self) -> SolverOutcome:
        run_started_at = self.clock()
        self.table = build_candidate_table(self.snapshot, self.config)
        self.live = LiveCandidateIndex(self.table, self.ctx)
        self.ledger.observer = self.live
        # The time budget covers the search only.
        self._started_at = self.clock()
        placeable = [item.section.id for item in self.table.values() if item.is_placeable]
        self._placeable_count = len(placeable)
        self._infeasible_count = len(self.table) - len(placeable)
        self._remaining = set(placeable)
        logger.info(
            "Search started period_id=%s sections=%s placeable=%s",
            self.snapshot.period.id,
            len(self.table),
            len(placeable),
        )
        self._report_progress()

        stack: list[_Frame] = []
        dead_ends: Counter = Counter()
        iterations = 0
        backtracks = 0
        best_key = (0, 0)
        best_placements: dict[int, tuple[Candidate, ...]] = {}
        best_decided: frozenset[int] = frozenset()
        stop = StopReason.finished

        if self._cancelled():
            stop = StopReason.cancelled
            frame = None
        else:
            frame = self._open_next_section()

        while frame is not None:
            iterations += 1
            if self._budget_exhausted(iterations):
                stop = StopReason.budget
                break

            candidate = self._next_valid(frame)
            if candidate is not None:
                self._commit(frame.section, candidate)
                frame.chosen = candidate
                stack.append(frame)
                if self._progress_key() > best_key:
                    best_key = self._progress_key()
                    best_placements = self.ledger.frozen_placements()
                    best_decided = self._decided(stack)
                frame, stop = self._advance(stack)
                continue

            key = (frame.section.id, frame.block_index)
            if dead_ends[key] < self.limits.backtrack_limit and self._undo_would_help(frame, stack):
                dead_ends[key] += 1
                backtracks += 1
                if frame.block_index == 0:
                    self._remaining.add(frame.section.id)
                frame = stack.pop()
                frame.chosen = None
                logger.debug(
                    "Backtracking to section_id=%s block=%s from section_id=%s block=%s",
                    frame.section.id,
                    frame.block_index,
                    key[0],
                    key[1],
                )
                continue

            frame.skipped = True
            stack.append(frame)
            logger.debug(
                "Leaving section_id=%s with %s of %s blocks placed",
                frame.section.id,
                frame.block_index,
                frame.section.required_blocks,
            )
            frame, stop = self._advance(stack)

        if self._progress_key() >= best_key:
            placements = self.ledger.frozen_placements()
            decided = self._decided(stack)
        else:
            placements = best_placements
            decided = best_decided

        all_placed = all(
            len(placements.get(item.section.id, ())) >= item.section.required_blocks
            for item in self.table.values()
        )
        state = RunState.completed if all_placed else RunState.partial
        if stop == StopReason.finished:
            self._report_progress(final=True)

        elapsed_ms = int((self.clock() - run_started_at) * 1000)
        outcome = SolverOutcome(
            state=state,
            stop_reason=stop,
            placements=placements,
            decided_section_ids=decided,
            candidate_table=self.table,
            iterations=iterations,
            backtracks=backtracks,
            elapsed_ms=elapsed_ms,
        )
        logger.info(
            "Search finished period_id=%s state=%s stop=%s placed_blocks=%s iterations=%s backtracks=%s elapsed_ms=%s",
            self.snapshot.period.id,
            state.value,
            stop.value,
            outcome.placed_blocks,
            iterations,
            backtracks,
            elapsed_ms,
        )
        return outcome

    def _commit(self, section: SectionInfo, candidate: Candidate) -> None:
        self.ledger.record(section.id, candidate)
        if self.ledger.placed_count(section.id) == section.required_blocks:
            self._complete_sections += 1

    def _release(self, section: SectionInfo, candidate: Candidate) -> None:
        if self.ledger.placed_count(section.id) == section.required_blocks:
            self._complete_sections -= 1
        self.ledger.unrecord(section.id, candidate)

    def _progress_key(self) -> tuple[int, int]:
        # Complete sections first, then placed blocks.
        return self._complete_sections, self.ledger.total

    def _advance(self, stack: list[_Frame]) -> tuple[_Frame | None, StopReason]:
        last = stack[-1]
        if not last.closes_section:
            return self._open_frame(last.section, last.block_index + 1), StopReason.finished
        self._report_progress()
        if self._cancelled():
            return None, StopReason.cancelled
        return self._open_next_section(), StopReason.finished

    def _open_next_section(self) -> _Frame | None:
        section = self._select_section()
        if section is None:
            return None
        self._remaining.discard(section.id)
        return self._open_frame(section, 0)

    def _open_frame(self, section: SectionInfo, block_index: int) -> _Frame:
        entry = self.table[section.id]
        placed: dict[Candidate, SlotOption] = {}
        for option in entry.options:
            candidate = self._place(entry, option)
            if candidate is not None:
                placed[candidate] = option
        ranked = rank_candidates(self.snapshot, self.ledger, section, list(placed), self.config)
        return _Frame(section=section, block_index=block_index, ranked=[placed[item] for item in ranked])

    def _place(self, entry: SectionCandidates, option: SlotOption) -> Candidate | None:
        """``option`` in its closest-capacity free room, or None when it cannot be committed."""
        rooms = entry.rooms_for(option)
        if not is_valid(self.ctx, entry.section, option.with_room(rooms[0]), SLOT_PREDICATES):
            return None
        for room_id in rooms:
            candidate = option.with_room(room_id)
            if is_valid(self.ctx, entry.section, candidate, ROOM_PREDICATES):
                return candidate
        return None

    def _next_valid(self, frame: _Frame) -> Candidate | None:
        entry = self.table[frame.section.id]
        while frame.cursor < len(frame.ranked):
            option = frame.ranked[frame.cursor]
            frame.cursor += 1
            candidate = self._place(entry, option)
            if candidate is not None:
                return candidate
        return None

    def _select_section(self) -> SectionInfo | None:
        """Most constrained remaining section, by live option count."""
        if not self._remaining:
            return None
        counts = self.live.counts
        section_id = min(
            self._remaining,
            key=lambda item: (
                counts[item],
                self.table[item].diagnosis.qualified_teachers,
                -len(self.table[item].section.required_specialty_ids),
                item,
            ),
        )
        return self.table[section_id].section

    def _undo_would_help(self, frame: _Frame, stack: list[_Frame]) -> bool:
        """Tentatively release the previous commitment and look for a new option.

        Leaves the previous commitment released when it helps, restored otherwise.
        """
        if not stack:
            return False
        previous = stack[-1]
        if previous.skipped or previous.chosen is None:
            return False

        chosen = previous.chosen
        self._release(previous.section, chosen)
        entry = self.table[frame.section.id]
        same_section = previous.section.id == frame.section.id
        helps = any(
            self._place(entry, option) is not None
            for option in entry.options
            if not (same_section and option.with_room(chosen.room_id) == chosen)
        )
        if not helps:
            self._commit(previous.section, chosen)
        return helps

    def _decided(self, stack: list[_Frame]) -> frozenset[int]:
        return frozenset(frame.section.id for frame in stack if frame.closes_section)

    def _budget_exhausted(self, iterations: int) -> bool:
        if iterations > self.limits.max_iterations:
            return True
        return self.clock() - self._started_at > self.limits.time_limit_seconds

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _report_progress(self, *, final: bool = False) -> None:
        if self.progress is None:
            return
        total = len(self.table)
        if final or total == 0:
            percent = 100
        else:
            resolved = self._infeasible_count + (self._placeable_count - len(self._remaining))
            percent = min(99, int(resolved * 100 / total))
        if percent > self._last_progress:
            self._last_progress = percent
            self.progress(percent)
