from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from academic_scheduler.api.deps import get_db, get_job_manager, get_lock_registry
from academic_scheduler.core.config import get_settings
from academic_scheduler.core.exceptions import ResourceNotFoundError
from academic_scheduler.models.assignment import Assignment, GenerationRun
from academic_scheduler.models.period import AcademicPeriod
from academic_scheduler.schemas.generator import (
    GenerationJobOut,
    GenerationResult,
    GenerationRunOut,
    PersistedAssignmentOut,
)
from academic_scheduler.services.generation import GenerationService
from academic_scheduler.services.jobs import GenerationJobManager
from academic_scheduler.services.run_lock import RunLockRegistry

router = APIRouter()


@router.post("/generacion", response_model=GenerationResult)
def generate_timetable(
    payload: dict[str, Any] = Body(...),
    persistir: bool = Query(default=True),
    db: Session = Depends(get_db),
    locks: RunLockRegistry = Depends(get_lock_registry),
) -> GenerationResult:
    service = GenerationService(db, settings=get_settings(), locks=locks)
    return service.generate(payload, persist=persistir)


@router.post("/generacion/trabajos", response_model=GenerationJobOut, status_code=status.HTTP_202_ACCEPTED)
def submit_generation_job(
    payload: dict[str, Any] = Body(...),
    persistir: bool = Query(default=True),
    manager: GenerationJobManager = Depends(get_job_manager),
) -> GenerationJobOut:
    return manager.submit(payload, persist=persistir).to_schema()


@router.get("/generacion/trabajos/{job_id}", response_model=GenerationJobOut)
def get_generation_job(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> GenerationJobOut:
    return manager.get(job_id).to_schema()


@router.delete("/generacion/trabajos/{job_id}", response_model=GenerationJobOut)
def cancel_generation_job(
    job_id: str,
    manager: GenerationJobManager = Depends(get_job_manager),
) -> GenerationJobOut:
    return manager.cancel(job_id).to_schema()


def _require_period(db: Session, periodo_id: int) -> AcademicPeriod:
    period = db.get(AcademicPeriod, periodo_id)
    if period is None:
        raise ResourceNotFoundError("Academic period", periodo_id)
    return period


@router.get("/periodos/{periodo_id}/horarios", response_model=list[PersistedAssignmentOut])
def list_period_assignments(
    periodo_id: int,
    db: Session = Depends(get_db),
) -> list[PersistedAssignmentOut]:
    _require_period(db, periodo_id)
    rows = db.execute(
        select(Assignment)
        .where(Assignment.period_id == periodo_id)
        .order_by(Assignment.weekday, Assignment.block_id, Assignment.section_id, Assignment.id)
    ).scalars()
    return [
        PersistedAssignmentOut(
            id=row.id,
            grupo=row.section_id,
            docente=row.teacher_id,
            espacio=row.room_id,
            periodo=row.period_id,
            dia_semana=row.weekday,
            bloque_horario=row.block_id,
            estado=row.status.value,
            observaciones=row.notes,
            generacion_id=row.generation_run_id,
        )
        for row in rows
    ]


@router.get("/periodos/{periodo_id}/generaciones", response_model=list[GenerationRunOut])
def list_period_generations(
    periodo_id: int,
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[GenerationRun]:
    _require_period(db, periodo_id)
    return list(
        db.execute(
            select(GenerationRun)
            .where(GenerationRun.period_id == periodo_id)
            .order_by(GenerationRun.created_at.desc(), GenerationRun.id)
            .limit(limit)
        ).scalars()
    )
