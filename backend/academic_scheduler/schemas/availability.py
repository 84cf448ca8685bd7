from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class AvailabilitySlotsIn(BaseModel):
    model_config = {"extra": "forbid"}

    periodo_id: int = Field(ge=1)
    dia_semana: int = Field(ge=1, le=7)
    franjas: list[int] = Field(min_length=1)
    politica: Literal["rechazar", "combinar"] = "rechazar"
    preferencia: int = Field(default=0, ge=-1, le=1)

    @field_validator("franjas")
    @classmethod
    def validate_slots(cls, value: list[int]) -> list[int]:
        negative = [item for item in value if item < 0]
        if negative:
            raise ValueError(f"Slot indices must be non-negative: {negative}")
        return value


class TimeRangeOut(BaseModel):
    inicio: str
    fin: str


class AvailabilityMergeOut(BaseModel):
    docente_id: int
    periodo_id: int
    dia_semana: int
    rangos: list[TimeRangeOut]
    bloques: list[int]
    creados: int = 0
    actualizados: int = 0
