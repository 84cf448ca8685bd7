from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.orm import Session

from academic_scheduler.models.assignment import Assignment, AssignmentStatus, GenerationRun
from academic_scheduler.schemas.generator import AssignmentOut, GenerationConfig, GenerationResult
from academic_scheduler.services.conflict_reporter import ConflictReport
from academic_scheduler.services.snapshot import DomainSnapshot
from academic_scheduler.services.solver import SolverOutcome

logger = logging.getLogger(__name__)


class ResultMaterializer:
    """Builds the external result shape from a finished search."""

    def __init__(self, snapshot: DomainSnapshot, outcome: SolverOutcome, report: ConflictReport):
        self.snapshot = snapshot
        self.outcome = outcome
        self.report = report

    def assignments(self) -> list[AssignmentOut]:
        rows: list[tuple[tuple[int, int, int], AssignmentOut]] = []
        for section_id, candidates in self.outcome.placements.items():
            for candidate in candidates:
                position = self.snapshot.block_position(candidate.weekday, candidate.block_id) or 0
                rows.append(
                    (
                        (candidate.weekday, position, section_id),
                        AssignmentOut(
                            grupo=section_id,
                            docente=candidate.teacher_id,
                            espacio=candidate.room_id,
                            periodo=self.snapshot.period.id,
                            dia_semana=candidate.weekday,
                            bloque_horario=candidate.block_id,
                            estado=AssignmentStatus.scheduled.value,
                        ),
                    )
                )
        rows.sort(key=lambda item: item[0])
        return [item for _, item in rows]

    def result(self) -> GenerationResult:
        horarios = self.assignments()
        fully_placed = sum(
            1
            for section in self.snapshot.sections
            if self.outcome.is_fully_placed(section)
        )
        return GenerationResult(
            estadoGeneracion=self.report.summary_status(),
            conflictos=self.report.count,
            cursos=fully_placed,
            docentes=len({item.docente for item in horarios}),
            aulas=len({item.espacio for item in horarios}),
            horarios=horarios,
            detalle_conflictos=[item.to_schema() for item in self.report.conflicts],
            estado_ejecucion=self.outcome.state.value,
            tiempo_ms=self.outcome.elapsed_ms,
        )


def persist_result(
    db: Session,
    *,
    period_id: int,
    result: GenerationResult,
    config: GenerationConfig,
    name: str | None = None,
) -> GenerationRun:
    """Replace the period's assignments with ``result`` and record the run.

    Commits on success and rolls back on any database error, so the previous
    timetable survives a failed write.
    """
    run = GenerationRun(
        period_id=period_id,
        name=name or f"Generacion periodo {period_id}",
        summary_status=result.estadoGeneracion,
        run_state=result.estado_ejecucion,
        conflicts=result.conflictos,
        sections=result.cursos,
        teachers=result.docentes,
        rooms=result.aulas,
        config=config.model_dump(),
        conflict_report=[item.model_dump() for item in result.detalle_conflictos],
        runtime_ms=result.tiempo_ms,
    )
    try:
        removed = db.execute(delete(Assignment).where(Assignment.period_id == period_id)).rowcount
        db.add(run)
        db.flush()
        db.add_all(
            Assignment(
                section_id=item.grupo,
                teacher_id=item.docente,
                room_id=item.espacio,
                period_id=period_id,
                weekday=item.dia_semana,
                block_id=item.bloque_horario,
                status=AssignmentStatus(item.estado),
                notes=item.observaciones,
                generation_run_id=run.id,
            )
            for item in result.horarios
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Persisting generation failed for period_id=%s", period_id)
        raise
    db.refresh(run)
    logger.info(
        "Persisted generation run_id=%s period_id=%s assignments=%s replaced=%s",
        run.id,
        period_id,
        len(result.horarios),
        removed,
    )
    return run
