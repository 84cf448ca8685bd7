"""Live option counts per section, kept current as the ledger changes.

An option is live while its teacher can still take the slot (free, and within
the daily and weekly caps) and at least one room of its group is free. The
counts are exact for sections the search has not started, where the
section-level predicates cannot fail yet.
"""
from __future__ import annotations

from collections import defaultdict

from academic_scheduler.services.candidates import SectionCandidates, SlotOption
from academic_scheduler.services.commitments import Candidate
from academic_scheduler.services.constraints import (
    ValidationContext,
    daily_hour_cap_respected,
    no_teacher_double_booking,
    weekly_hour_cap_respected,
)

ResourceSlot = tuple[int, int, int]
GroupKey = tuple[int, int]


class LiveCandidateIndex:
    def __init__(self, table: dict[int, SectionCandidates], ctx: ValidationContext) -> None:
        self.ctx = ctx
        self.counts: dict[int, int] = {}
        self._teacher_ok: dict[ResourceSlot, bool] = {}
        self._teacher_slots: dict[int, set[tuple[int, int]]] = defaultdict(set)
        self._options_by_teacher_slot: dict[ResourceSlot, list[tuple[int, SlotOption]]] = defaultdict(list)
        self._free_rooms: dict[GroupKey, int] = {}
        self._groups_by_room_slot: dict[ResourceSlot, list[GroupKey]] = defaultdict(list)
        self._options_by_group: dict[GroupKey, list[SlotOption]] = defaultdict(list)

        for section_id, entry in table.items():
            for index, group in enumerate(entry.room_groups):
                self._free_rooms[(section_id, index)] = len(group.room_ids)
                for room_id in group.room_ids:
                    self._groups_by_room_slot[(room_id, group.weekday, group.block_id)].append((section_id, index))
            for option in entry.options:
                slot = (option.teacher_id, option.weekday, option.block_id)
                self._teacher_slots[option.teacher_id].add((option.weekday, option.block_id))
                self._options_by_teacher_slot[slot].append((section_id, option))
                self._options_by_group[(section_id, option.group)].append(option)

        for slot in self._options_by_teacher_slot:
            self._teacher_ok[slot] = self._teacher_can_take(*slot)
        for section_id, entry in table.items():
            self.counts[section_id] = sum(1 for option in entry.options if self._is_live(section_id, option))

    def ledger_changed(self, candidate: Candidate, *, taken: bool) -> None:
        self._update_room(candidate, taken=taken)
        self._refresh_teacher(candidate.teacher_id)

    def _is_live(self, section_id: int, option: SlotOption) -> bool:
        slot = (option.teacher_id, option.weekday, option.block_id)
        return self._teacher_ok[slot] and self._free_rooms[(section_id, option.group)] > 0

    def _teacher_can_take(self, teacher_id: int, weekday: int, block_id: int) -> bool:
        slot = Candidate(weekday=weekday, block_id=block_id, teacher_id=teacher_id, room_id=0)
        return (
            no_teacher_double_booking(self.ctx, None, slot)
            and daily_hour_cap_respected(self.ctx, None, slot)
            and weekly_hour_cap_respected(self.ctx, None, slot)
        )

    def _update_room(self, candidate: Candidate, *, taken: bool) -> None:
        step = -1 if taken else 1
        for key in self._groups_by_room_slot.get((candidate.room_id, candidate.weekday, candidate.block_id), ()):
            before = self._free_rooms[key]
            self._free_rooms[key] = before + step
            # Only a group that runs out of rooms, or gets its first back, moves the count.
            if (taken and before == 1) or (not taken and before == 0):
                section_id = key[0]
                for option in self._options_by_group[key]:
                    if self._teacher_ok[(option.teacher_id, option.weekday, option.block_id)]:
                        self.counts[section_id] += step

    def _refresh_teacher(self, teacher_id: int) -> None:
        # Caps span the whole day and week, so every slot of the teacher may flip.
        for weekday, block_id in self._teacher_slots.get(teacher_id, ()):
            slot = (teacher_id, weekday, block_id)
            ok = self._teacher_can_take(teacher_id, weekday, block_id)
            if ok == self._teacher_ok[slot]:
                continue
            self._teacher_ok[slot] = ok
            step = 1 if ok else -1
            for section_id, option in self._options_by_teacher_slot[slot]:
                if self._free_rooms[(section_id, option.group)] > 0:
                    self.counts[section_id] += step
