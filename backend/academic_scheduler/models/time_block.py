from enum import Enum

from sqlalchemy import Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academic_scheduler.db.base import Base


class Shift(str, Enum):
    morning = "M"
    afternoon = "T"
    evening = "N"


class TimeBlock(Base):
    __tablename__ = "time_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    shift: Mapped[Shift] = mapped_column(
        SAEnum(Shift, name="shift", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
    )
    # 1=Monday .. 7=Sunday; null means the block exists on every teaching day.
    weekday: Mapped[int | None] = mapped_column(Integer, nullable=True)
