from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy.orm import Session

from academic_scheduler.core.config import Settings, get_settings
from academic_scheduler.core.exceptions import AppError, GenerationValidationError
from academic_scheduler.schemas.generator import GenerationConfig, GenerationRequest, GenerationResult
from academic_scheduler.services.conflict_reporter import ConflictReport, ConflictReporter, audit_placements
from academic_scheduler.services.materializer import ResultMaterializer, persist_result
from academic_scheduler.services.run_lock import RunLockRegistry, get_run_lock_registry
from academic_scheduler.services.snapshot import DomainSnapshot, SnapshotRepository, SqlAlchemySnapshotRepository
from academic_scheduler.services.solver import AssignmentSolver, ProgressCallback, SolverLimits, SolverOutcome, StopReason

logger = logging.getLogger(__name__)


def parse_generation_request(payload: GenerationRequest | dict) -> GenerationRequest:
    if isinstance(payload, GenerationRequest):
        return payload
    try:
        return GenerationRequest.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"campo": ".".join(str(part) for part in error["loc"]), "mensaje": error["msg"]}
            for error in exc.errors()
        ]
        raise GenerationValidationError("Invalid generation request", details={"errores": errors}) from exc


def limits_from_settings(settings: Settings) -> SolverLimits:
    return SolverLimits(
        max_iterations=settings.search_max_iterations,
        time_limit_seconds=settings.search_time_limit_seconds,
        backtrack_limit=settings.search_backtrack_limit,
    )


@dataclass
class SolvedTimetable:
    outcome: SolverOutcome
    report: ConflictReport
    result: GenerationResult


def solve_snapshot(
    snapshot: DomainSnapshot,
    config: GenerationConfig,
    *,
    limits: SolverLimits | None = None,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> SolvedTimetable:
    """Search, explain and materialize one timetable without touching the database."""
    solver = AssignmentSolver(snapshot, config, limits=limits, cancel_event=cancel_event, progress=progress)
    outcome = solver.solve()

    issues = audit_placements(snapshot, outcome.placements)
    if issues:
        logger.error("Generated timetable for period_id=%s failed integrity checks: %s", snapshot.period.id, issues)
        raise AppError(
            "Generated timetable failed integrity checks",
            status_code=500,
            details={"problemas": issues},
        )

    report = ConflictReporter(snapshot, config, outcome).build()
    result = ResultMaterializer(snapshot, outcome, report).result()
    return SolvedTimetable(outcome=outcome, report=report, result=result)


class GenerationService:
    def __init__(
        self,
        db: Session,
        *,
        settings: Settings | None = None,
        locks: RunLockRegistry | None = None,
        repository: SnapshotRepository | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.locks = locks or get_run_lock_registry()
        self.repository = repository or SqlAlchemySnapshotRepository(
            db,
            teaching_days=self.settings.teaching_days,
            hours_per_block=self.settings.hours_per_block,
        )

    def generate(
        self,
        payload: GenerationRequest | dict,
        *,
        persist: bool = True,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        request = parse_generation_request(payload)
        with self.locks.hold(request.periodo_id):
            return self.run_unlocked(request, persist=persist, cancel_event=cancel_event, progress=progress)

    def run_unlocked(
        self,
        request: GenerationRequest,
        *,
        persist: bool = True,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Run a generation; the caller must already hold the period's run lock."""
        logger.info(
            "Generation started period_id=%s config=%s",
            request.periodo_id,
            request.config.model_dump(),
        )
        snapshot = self.repository.load(request.periodo_id)
        solved = solve_snapshot(
            snapshot,
            request.config,
            limits=limits_from_settings(self.settings),
            cancel_event=cancel_event,
            progress=progress,
        )
        result = solved.result

        if persist and self._should_persist(solved.outcome):
            run = persist_result(self.db, period_id=request.periodo_id, result=result, config=request.config)
            result.generacion_id = run.id

        logger.info(
            "Generation finished period_id=%s status=%s conflicts=%s sections=%s teachers=%s rooms=%s elapsed_ms=%s",
            request.periodo_id,
            result.estadoGeneracion,
            result.conflictos,
            result.cursos,
            result.docentes,
            result.aulas,
            result.tiempo_ms,
        )
        return result

    @staticmethod
    def _should_persist(outcome: SolverOutcome) -> bool:
        # A run cancelled before placing anything must not wipe the stored timetable.
        return not (outcome.stop_reason == StopReason.cancelled and not outcome.placements)
