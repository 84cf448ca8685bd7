import os

# The app module builds its engine at import time; keep it off any real database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from academic_scheduler.api.deps import get_db, get_job_manager
from academic_scheduler.db.base import Base
from academic_scheduler.main import app
from academic_scheduler.models import (
    AcademicPeriod,
    CourseSection,
    Room,
    Shift,
    Specialty,
    Subject,
    Teacher,
    TeacherAvailability,
    TimeBlock,
)
from academic_scheduler.services.jobs import GenerationJobManager
from academic_scheduler.services.run_lock import get_run_lock_registry
from academic_scheduler.services.snapshot import (
    AvailabilityInfo,
    BlockInfo,
    DomainSnapshot,
    PeriodInfo,
    RoomInfo,
    SectionInfo,
    TeacherInfo,
)

DEFAULT_BLOCKS = [
    BlockInfo(id=1, name="B1", start=7 * 60, end=8 * 60, shift="M"),
    BlockInfo(id=2, name="B2", start=8 * 60, end=9 * 60, shift="M"),
    BlockInfo(id=3, name="B3", start=9 * 60, end=10 * 60, shift="M"),
    BlockInfo(id=4, name="B4", start=14 * 60, end=15 * 60, shift="T"),
]


def _availability(teacher_ids, *, days=(1, 2, 3, 4, 5), block_ids=(1, 2, 3, 4), preference=0):
    return [
        AvailabilityInfo(teacher_id=teacher_id, weekday=day, block_id=block_id, preference=preference)
        for teacher_id in teacher_ids
        for day in days
        for block_id in block_ids
    ]


def _build_snapshot(
    *,
    blocks=None,
    teachers=None,
    rooms=None,
    sections=None,
    availability=None,
    restrictions=None,
    teaching_days=(1, 2, 3, 4, 5),
):
    teachers = teachers if teachers is not None else [TeacherInfo(id=1, name="Ana Torres")]
    return DomainSnapshot.build(
        period=PeriodInfo(id=1, name="2025-I"),
        blocks=list(blocks if blocks is not None else DEFAULT_BLOCKS),
        teachers=teachers,
        rooms=rooms if rooms is not None else [RoomInfo(id=1, name="A-101", capacity=40)],
        sections=sections if sections is not None else [],
        availability=(
            availability
            if availability is not None
            else _availability([teacher.id for teacher in teachers], days=teaching_days)
        ),
        restrictions=restrictions,
        teaching_days=teaching_days,
    )


@pytest.fixture()
def build_snapshot():
    return _build_snapshot


@pytest.fixture()
def availability_for():
    return _availability


@pytest.fixture()
def make_section():
    def factory(section_id=1, **overrides):
        values = {
            "id": section_id,
            "code": f"G{section_id}",
            "subject_id": section_id,
            "required_blocks": 1,
            "enrollment": 25,
        }
        values.update(overrides)
        return SectionInfo(**values)

    return factory


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def seed_period():
    """Bases de Datos scenario: one qualified teacher, one available block, one room."""

    def seed(db, *, sections=1, teacher_blocks=1):
        period = AcademicPeriod(name="2025-I", start_date=date(2025, 3, 1), end_date=date(2025, 7, 31))
        specialty = Specialty(name="Bases de Datos", code="BD")
        teacher = Teacher(first_names="Ana", last_names="Torres", email="ana.torres@example.edu")
        teacher.specialties.append(specialty)
        subject = Subject(name="Bases de Datos I", code="BD-101", theory_hours=1)
        subject.specialties.append(specialty)
        room = Room(name="A-101", code="A101", capacity=40)
        blocks = [
            TimeBlock(name=f"B{index}", start_time=f"{7 + index:02d}:00", end_time=f"{8 + index:02d}:00", shift=Shift.morning)
            for index in range(teacher_blocks)
        ]
        db.add_all([period, specialty, teacher, subject, room, *blocks])
        db.flush()
        db.add_all(
            CourseSection(code=f"BD-{index + 1}", subject_id=subject.id, period_id=period.id, estimated_enrollment=30)
            for index in range(sections)
        )
        db.add_all(
            TeacherAvailability(teacher_id=teacher.id, period_id=period.id, weekday=1, block_id=block.id)
            for block in blocks
        )
        db.commit()
        return {
            "period_id": period.id,
            "teacher_id": teacher.id,
            "room_id": room.id,
            "block_ids": [block.id for block in blocks],
        }

    return seed


@pytest.fixture()
def client(session_factory):
    registry = get_run_lock_registry()
    registry.clear()
    manager = GenerationJobManager(session_factory, locks=registry, max_workers=1)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client

    manager.shutdown(wait=True)
    app.dependency_overrides.clear()
    registry.clear()
