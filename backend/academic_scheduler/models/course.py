from sqlalchemy import Column, Enum as SAEnum, ForeignKey, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academic_scheduler.db.base import Base
from academic_scheduler.models.teacher import Specialty
from academic_scheduler.models.time_block import Shift


subject_specialties = Table(
    "subject_specialties",
    Base.metadata,
    Column("subject_id", ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
    Column("specialty_id", ForeignKey("specialties.id", ondelete="CASCADE"), primary_key=True),
)


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    career_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    theory_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    practice_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lab_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_room_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    specialties: Mapped[list[Specialty]] = relationship(secondary=subject_specialties, lazy="selectin")


class CourseSection(Base):
    __tablename__ = "course_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    period_id: Mapped[int] = mapped_column(ForeignKey("academic_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    estimated_enrollment: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    preferred_shift: Mapped[Shift | None] = mapped_column(
        SAEnum(Shift, name="shift", values_callable=lambda items: [item.value for item in items]),
        nullable=True,
    )
    pinned_teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)

    subject: Mapped[Subject] = relationship(lazy="joined")
