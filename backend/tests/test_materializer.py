from sqlalchemy import select

from academic_scheduler.models import Assignment, CourseSection, GenerationRun
from academic_scheduler.schemas.generator import AssignmentOut, GenerationConfig, GenerationResult
from academic_scheduler.services.commitments import Candidate
from academic_scheduler.services.conflict_reporter import ConflictReport
from academic_scheduler.services.materializer import ResultMaterializer, persist_result
from academic_scheduler.services.solver import RunState, SolverOutcome, StopReason
from academic_scheduler.services.snapshot import RoomInfo, TeacherInfo


def test_assignments_are_ordered_by_day_then_block_position(build_snapshot, make_section):
    snapshot = build_snapshot(
        teachers=[TeacherInfo(id=1, name="Ana"), TeacherInfo(id=2, name="Luis")],
        rooms=[RoomInfo(id=1, name="A-101", capacity=40), RoomInfo(id=2, name="A-102", capacity=40)],
        sections=[make_section(1, required_blocks=2), make_section(2)],
    )
    outcome = SolverOutcome(
        state=RunState.completed,
        stop_reason=StopReason.finished,
        placements={
            1: (Candidate(2, 1, 1, 1), Candidate(1, 3, 1, 1)),
            2: (Candidate(1, 1, 2, 2),),
        },
        decided_section_ids=frozenset({1, 2}),
        candidate_table={},
        elapsed_ms=12,
    )

    result = ResultMaterializer(snapshot, outcome, ConflictReport([], StopReason.finished)).result()

    assert [(item.dia_semana, item.bloque_horario, item.grupo) for item in result.horarios] == [
        (1, 1, 2),
        (1, 3, 1),
        (2, 1, 1),
    ]
    assert result.estadoGeneracion == "Completo"
    assert result.cursos == 2
    assert result.docentes == 2
    assert result.aulas == 2
    assert result.tiempo_ms == 12
    assert all(item.estado == "Programado" and item.periodo == 1 for item in result.horarios)


def test_partially_placed_sections_do_not_count_as_courses(build_snapshot, make_section):
    snapshot = build_snapshot(sections=[make_section(1, required_blocks=2)])
    outcome = SolverOutcome(
        state=RunState.partial,
        stop_reason=StopReason.finished,
        placements={1: (Candidate(1, 1, 1, 1),)},
        decided_section_ids=frozenset({1}),
        candidate_table={},
    )

    result = ResultMaterializer(snapshot, outcome, ConflictReport([], StopReason.finished)).result()

    assert result.cursos == 0
    assert len(result.horarios) == 1
    assert result.estado_ejecucion == "PartialWithConflicts"


def _result(period_id, ids, *, block_index=0):
    return GenerationResult(
        estadoGeneracion="Completo",
        conflictos=0,
        cursos=1,
        docentes=1,
        aulas=1,
        horarios=[
            AssignmentOut(
                grupo=ids["section_id"],
                docente=ids["teacher_id"],
                espacio=ids["room_id"],
                periodo=period_id,
                dia_semana=1,
                bloque_horario=ids["block_ids"][block_index],
            )
        ],
    )


def test_persist_replaces_previous_assignments(db_session, seed_period):
    ids = seed_period(db_session, teacher_blocks=2)
    ids["section_id"] = db_session.execute(select(CourseSection.id)).scalar_one()
    period_id = ids["period_id"]

    first = persist_result(db_session, period_id=period_id, result=_result(period_id, ids), config=GenerationConfig())
    second = persist_result(
        db_session,
        period_id=period_id,
        result=_result(period_id, ids, block_index=1),
        config=GenerationConfig(turno_preferente="M"),
        name="Segunda",
    )

    rows = db_session.execute(select(Assignment).where(Assignment.period_id == period_id)).scalars().all()
    assert [(row.block_id, row.generation_run_id) for row in rows] == [(ids["block_ids"][1], second.id)]

    runs = db_session.execute(select(GenerationRun).order_by(GenerationRun.created_at)).scalars().all()
    assert {run.id for run in runs} == {first.id, second.id}
    assert second.name == "Segunda"
    assert second.config["turno_preferente"] == "M"
    assert second.summary_status == "Completo"
