from academic_scheduler.schemas.generator import GenerationConfig
from academic_scheduler.services.candidates import build_candidate_table
from academic_scheduler.services.commitments import Candidate, CommitmentLedger
from academic_scheduler.services.constraints import DYNAMIC_PREDICATES, ValidationContext, is_valid
from academic_scheduler.services.live_candidates import LiveCandidateIndex
from academic_scheduler.services.snapshot import RoomInfo, TeacherInfo


def _indexed(snapshot):
    table = build_candidate_table(snapshot, GenerationConfig())
    ledger = CommitmentLedger(snapshot)
    ctx = ValidationContext(snapshot=snapshot, config=GenerationConfig(), ledger=ledger)
    index = LiveCandidateIndex(table, ctx)
    ledger.observer = index
    return table, ledger, ctx, index


def _rescanned(table, ctx, section_id):
    entry = table[section_id]
    return sum(
        1
        for option in entry.options
        if any(
            is_valid(ctx, entry.section, option.with_room(room_id), DYNAMIC_PREDICATES)
            for room_id in entry.rooms_for(option)
        )
    )


def test_taking_the_only_room_removes_the_slot(build_snapshot, make_section, availability_for):
    snapshot = build_snapshot(
        teachers=[TeacherInfo(id=1, name="Ana"), TeacherInfo(id=2, name="Luis")],
        sections=[make_section(1), make_section(2)],
        availability=availability_for([1, 2], days=(1,), block_ids=(1, 2)),
        teaching_days=(1,),
    )
    _, ledger, _, index = _indexed(snapshot)
    assert index.counts == {1: 4, 2: 4}

    placed = Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1)
    ledger.record(1, placed)
    assert index.counts[2] == 2

    ledger.unrecord(1, placed)
    assert index.counts == {1: 4, 2: 4}


def test_daily_cap_flips_the_teachers_other_slots(build_snapshot, make_section, availability_for):
    snapshot = build_snapshot(
        teachers=[TeacherInfo(id=1, name="Ana", max_daily_hours=1), TeacherInfo(id=2, name="Luis")],
        rooms=[RoomInfo(id=1, name="A-101", capacity=40), RoomInfo(id=2, name="A-102", capacity=40)],
        sections=[make_section(1), make_section(2)],
        availability=availability_for([1, 2], days=(1,), block_ids=(1, 2)),
        teaching_days=(1,),
    )
    _, ledger, _, index = _indexed(snapshot)

    placed = Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1)
    ledger.record(1, placed)
    # Ana is booked at block 1 and over her cap at block 2.
    assert index.counts[2] == 2

    ledger.unrecord(1, placed)
    assert index.counts[2] == 4


def test_counts_match_a_full_rescan(build_snapshot, make_section, availability_for):
    snapshot = build_snapshot(
        teachers=[TeacherInfo(id=1, name="Ana", max_weekly_hours=2), TeacherInfo(id=2, name="Luis")],
        rooms=[RoomInfo(id=1, name="A-101", capacity=40), RoomInfo(id=2, name="LAB-1", capacity=20)],
        sections=[make_section(1), make_section(2, enrollment=15), make_section(3, pinned_teacher_id=2)],
        availability=availability_for([1, 2], days=(1, 2), block_ids=(1, 2, 3)),
        teaching_days=(1, 2),
    )
    table, ledger, ctx, index = _indexed(snapshot)
    steps = [
        (1, Candidate(weekday=1, block_id=1, teacher_id=1, room_id=1)),
        (2, Candidate(weekday=1, block_id=1, teacher_id=2, room_id=2)),
        (1, Candidate(weekday=2, block_id=3, teacher_id=1, room_id=1)),
    ]

    for section_id, candidate in steps:
        ledger.record(section_id, candidate)
        assert index.counts[3] == _rescanned(table, ctx, 3)
    for section_id, candidate in reversed(steps):
        ledger.unrecord(section_id, candidate)
        assert index.counts[3] == _rescanned(table, ctx, 3)
