from collections.abc import Generator
from functools import lru_cache

from sqlalchemy.orm import Session

from academic_scheduler.core.config import get_settings
from academic_scheduler.db.session import SessionLocal
from academic_scheduler.services.jobs import GenerationJobManager
from academic_scheduler.services.run_lock import RunLockRegistry, get_run_lock_registry


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_lock_registry() -> RunLockRegistry:
    return get_run_lock_registry()


@lru_cache
def get_job_manager() -> GenerationJobManager:
    return GenerationJobManager(SessionLocal, settings=get_settings(), locks=get_run_lock_registry())
