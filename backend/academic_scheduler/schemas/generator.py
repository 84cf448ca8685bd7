from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SummaryStatus = Literal["Completo", "Parcial", "Con Conflictos"]
AssignmentState = Literal["Programado", "Confirmado", "Cancelado"]
RunStateValue = Literal["Pending", "Running", "Completed", "PartialWithConflicts", "Failed"]


class GenerationConfig(BaseModel):
    model_config = {"extra": "forbid"}

    prioridad_docente: int = Field(default=3, ge=1, le=5)
    prioridad_aula: int = Field(default=3, ge=1, le=5)
    maximo_horas_diarias: int = Field(default=8, ge=1, le=12)
    permitir_huecos: bool = True
    turno_preferente: Literal["M", "T", "N"] | None = None


class GenerationRequest(BaseModel):
    model_config = {"extra": "forbid"}

    periodo_id: int = Field(ge=1)
    config: GenerationConfig = Field(default_factory=GenerationConfig)


class AssignmentOut(BaseModel):
    grupo: int
    docente: int
    espacio: int
    periodo: int
    dia_semana: int = Field(ge=1, le=7)
    bloque_horario: int
    estado: AssignmentState = "Programado"
    observaciones: str | None = None


class SectionConflictOut(BaseModel):
    grupo: int
    codigo_grupo: str
    motivo: str
    motivos: list[str] = Field(default_factory=list)
    descripcion: str
    bloques_requeridos: int
    bloques_asignados: int
    detalle: dict = Field(default_factory=dict)


class GenerationResult(BaseModel):
    estadoGeneracion: SummaryStatus
    conflictos: int = Field(ge=0)
    cursos: int = Field(ge=0)
    docentes: int = Field(ge=0)
    aulas: int = Field(ge=0)
    horarios: list[AssignmentOut] = Field(default_factory=list)
    detalle_conflictos: list[SectionConflictOut] = Field(default_factory=list)
    estado_ejecucion: RunStateValue = "Completed"
    tiempo_ms: int = 0
    generacion_id: str | None = None


class GenerationJobOut(BaseModel):
    id: str
    periodo_id: int
    estado: RunStateValue
    progreso: int = Field(ge=0, le=100)
    creado: datetime
    finalizado: datetime | None = None
    error: str | None = None
    resultado: GenerationResult | None = None


class GenerationRunOut(BaseModel):
    id: str
    period_id: int
    name: str
    summary_status: str
    run_state: str
    conflicts: int
    sections: int
    teachers: int
    rooms: int
    config: dict = Field(default_factory=dict)
    conflict_report: list[dict] = Field(default_factory=list)
    runtime_ms: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PersistedAssignmentOut(AssignmentOut):
    id: int
    generacion_id: str | None = None
