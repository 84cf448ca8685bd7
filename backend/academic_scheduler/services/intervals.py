"""Merging of discrete availability cells into time ranges.

A day is a grid of fixed-length slots starting at ``grid_start``; slot ``i``
covers ``[grid_start + i * slot_minutes, grid_start + (i + 1) * slot_minutes)``.
All ranges here are half-open minute intervals.
"""
from __future__ import annotations

from typing import Iterable, Literal

from academic_scheduler.core.exceptions import AvailabilityOverlapError, GenerationValidationError
from academic_scheduler.schemas.common import minutes_to_time

MergePolicy = Literal["rechazar", "combinar"]

MINUTES_PER_DAY = 24 * 60


def merge_slot_indices(indices: Iterable[int]) -> list[tuple[int, int]]:
    """Collapse slot indices into maximal runs of consecutive slots.

    Returns ``(first, last)`` pairs, both inclusive. Duplicates are ignored.
    """
    runs: list[tuple[int, int]] = []
    for index in sorted(set(indices)):
        if runs and index == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], index)
        else:
            runs.append((index, index))
    return runs


def runs_to_time_ranges(
    runs: list[tuple[int, int]],
    *,
    grid_start: int,
    slot_minutes: int,
) -> list[tuple[int, int]]:
    if slot_minutes <= 0:
        raise GenerationValidationError("Slot length must be positive", details={"minutos_franja": slot_minutes})
    ranges: list[tuple[int, int]] = []
    for first, last in runs:
        start = grid_start + first * slot_minutes
        end = grid_start + (last + 1) * slot_minutes
        if first < 0 or end > MINUTES_PER_DAY:
            raise GenerationValidationError(
                "Availability slot outside the daily grid",
                details={"franjas": [first, last]},
            )
        ranges.append((start, end))
    return ranges


def find_overlaps(
    new_ranges: list[tuple[int, int]],
    existing_ranges: list[tuple[int, int]],
) -> list[tuple[tuple[int, int], tuple[int, int]]]:
    overlaps = []
    for new in new_ranges:
        for existing in existing_ranges:
            if max(new[0], existing[0]) < min(new[1], existing[1]):
                overlaps.append((new, existing))
    return overlaps


def coalesce_ranges(ranges: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    """Union of ranges; touching ranges are joined."""
    merged: list[tuple[int, int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def merge_with_existing(
    new_ranges: list[tuple[int, int]],
    existing_ranges: list[tuple[int, int]],
    policy: MergePolicy = "rechazar",
) -> list[tuple[int, int]]:
    """Combine new ranges with the ones already stored for the same day.

    ``rechazar`` refuses any overlap; ``combinar`` absorbs it.
    """
    if policy not in ("rechazar", "combinar"):
        raise GenerationValidationError(f"Unknown merge policy '{policy}'", details={"politica": policy})
    if policy == "rechazar":
        overlaps = find_overlaps(new_ranges, existing_ranges)
        if overlaps:
            raise AvailabilityOverlapError(
                "New availability overlaps existing availability",
                details={
                    "solapamientos": [
                        {
                            "nuevo": format_range(new),
                            "existente": format_range(existing),
                        }
                        for new, existing in overlaps
                    ]
                },
            )
    return coalesce_ranges([*new_ranges, *existing_ranges])


def format_range(value: tuple[int, int]) -> dict[str, str]:
    return {"inicio": minutes_to_time(value[0]), "fin": minutes_to_time(value[1])}


def range_contains(outer: tuple[int, int], start: int, end: int) -> bool:
    return outer[0] <= start and end <= outer[1]
