import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from academic_scheduler.db.base import Base


class AssignmentStatus(str, Enum):
    scheduled = "Programado"
    confirmed = "Confirmado"
    cancelled = "Cancelado"


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_id: Mapped[int] = mapped_column(ForeignKey("course_sections.id", ondelete="CASCADE"), nullable=False)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    block_id: Mapped[int] = mapped_column(ForeignKey("time_blocks.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[AssignmentStatus] = mapped_column(
        SAEnum(AssignmentStatus, name="assignment_status", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
        default=AssignmentStatus.scheduled,
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    generation_run_id: Mapped[str | None] = mapped_column(
        ForeignKey("generation_runs.id", ondelete="SET NULL"),
        nullable=True,
    )


class GenerationRun(Base):
    __tablename__ = "generation_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    period_id: Mapped[int] = mapped_column(ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    summary_status: Mapped[str] = mapped_column(String(30), nullable=False)
    run_state: Mapped[str] = mapped_column(String(30), nullable=False)
    conflicts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    teachers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    conflict_report: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    runtime_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
