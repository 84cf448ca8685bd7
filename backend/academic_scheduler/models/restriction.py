from enum import Enum

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academic_scheduler.db.base import Base


class RestrictionScope(str, Enum):
    global_ = "GLOBAL"
    teacher = "DOCENTE"
    subject = "MATERIA"
    room = "AULA"
    career = "CARRERA"
    period = "PERIODO"


class RestrictionRule(Base):
    __tablename__ = "restriction_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    scope: Mapped[RestrictionScope] = mapped_column(
        SAEnum(RestrictionScope, name="restriction_scope", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
    )
    entity_id_1: Mapped[int | None] = mapped_column(Integer, nullable=True)
    entity_id_2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parameter_value: Mapped[str | None] = mapped_column(String(100), nullable=True)
    period_id: Mapped[int | None] = mapped_column(ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
