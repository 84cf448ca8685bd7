from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.commitments import Candidate, CommitmentLedger
from academic_scheduler.services.scoring import (
    SHIFT_BONUS,
    gap_delta,
    idle_blocks,
    rank_candidates,
    room_fit,
    score_candidate,
)
from academic_scheduler.services.snapshot import AvailabilityInfo, RoomInfo


def test_idle_blocks_counts_holes():
    assert idle_blocks(set()) == 0
    assert idle_blocks({1, 2, 3}) == 0
    assert idle_blocks({1, 4}) == 2


def test_gap_delta_only_counts_new_holes(build_snapshot):
    snapshot = build_snapshot()
    ledger = CommitmentLedger(snapshot)
    ledger.record(1, Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1))

    assert gap_delta(snapshot, ledger, Candidate(weekday=1, block_id=2, teacher_id=1, room_id=1)) == 0
    assert gap_delta(snapshot, ledger, Candidate(weekday=1, block_id=3, teacher_id=1, room_id=1)) == 1
    assert gap_delta(snapshot, ledger, Candidate(weekday=2, block_id=4, teacher_id=1, room_id=1)) == 0


def test_room_fit_prefers_snug_rooms(build_snapshot, make_section):
    snapshot = build_snapshot(rooms=[RoomInfo(id=1, name="A", capacity=30), RoomInfo(id=2, name="B", capacity=120)])
    section = make_section(1, enrollment=30)

    assert room_fit(snapshot, section, Candidate(1, 1, 1, 1)) == 1.0
    assert room_fit(snapshot, section, Candidate(1, 1, 1, 2)) == 0.25


def test_preferred_slots_rank_first(build_snapshot, make_section):
    section = make_section(1)
    snapshot = build_snapshot(
        sections=[section],
        availability=[
            AvailabilityInfo(teacher_id=1, weekday=1, block_id=1, preference=-1),
            AvailabilityInfo(teacher_id=1, weekday=1, block_id=2, preference=0),
            AvailabilityInfo(teacher_id=1, weekday=1, block_id=3, preference=1),
        ],
    )
    ledger = CommitmentLedger(snapshot)
    candidates = [Candidate(1, block_id, 1, 1) for block_id in (1, 2, 3)]

    ranked = rank_candidates(snapshot, ledger, section, candidates, GenerationConfig())

    assert [candidate.block_id for candidate in ranked] == [3, 2, 1]


def test_shift_bonus_applies_for_run_or_section_preference(build_snapshot, make_section):
    snapshot = build_snapshot()
    ledger = CommitmentLedger(snapshot)
    afternoon = Candidate(1, 4, 1, 1)
    morning = Candidate(1, 1, 1, 1)

    plain = make_section(1)
    base = score_candidate(snapshot, ledger, plain, afternoon, GenerationConfig())
    boosted = score_candidate(snapshot, ledger, plain, afternoon, GenerationConfig(turno_preferente="T"))
    assert boosted - base == SHIFT_BONUS

    morning_section = make_section(2, preferred_shift="M")
    assert score_candidate(snapshot, ledger, morning_section, morning, GenerationConfig()) > score_candidate(
        snapshot, ledger, morning_section, afternoon, GenerationConfig()
    )


def test_gap_penalty_only_when_gaps_disallowed(build_snapshot, make_section):
    snapshot = build_snapshot()
    ledger = CommitmentLedger(snapshot)
    ledger.record(9, Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1))
    section = make_section(1)
    adjacent = Candidate(1, 2, 1, 1)
    distant = Candidate(1, 3, 1, 1)

    relaxed = GenerationConfig(permitir_huecos=True)
    strict = GenerationConfig(permitir_huecos=False)

    assert score_candidate(snapshot, ledger, section, adjacent, relaxed) == score_candidate(
        snapshot, ledger, section, distant, relaxed
    )
    assert score_candidate(snapshot, ledger, section, adjacent, strict) > score_candidate(
        snapshot, ledger, section, distant, strict
    )


def test_same_day_penalty_spreads_a_section(build_snapshot, make_section):
    snapshot = build_snapshot()
    ledger = CommitmentLedger(snapshot)
    section = make_section(1, required_blocks=2)
    ledger.record(section.id, Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1))

    ranked = rank_candidates(
        snapshot,
        ledger,
        section,
        [Candidate(1, 2, 1, 1), Candidate(2, 2, 1, 1)],
        GenerationConfig(),
    )

    assert ranked[0].weekday == 2

