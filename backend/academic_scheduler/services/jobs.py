"""Background generation jobs.

Jobs run on a small thread pool. The period's run lock is taken when the job
is submitted, so a second request for the same period fails immediately
instead of queueing, and it is released when the worker finishes. Finished
jobs are kept for polling until they outlive the retention TTL or fall beyond
the cap on finished jobs.
"""
from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from academic_scheduler.core.config import Settings, get_settings
from academic_scheduler.core.exceptions import AppError, ConcurrencyError, ResourceNotFoundError
from academic_scheduler.schemas.generator import GenerationJobOut, GenerationRequest, GenerationResult
from academic_scheduler.services.generation import GenerationService, parse_generation_request
from academic_scheduler.services.run_lock import RunLockRegistry, get_run_lock_registry
from academic_scheduler.services.solver import RunState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GenerationJob:
    id: str
    request: GenerationRequest
    persist: bool = True
    state: RunState = RunState.pending
    progress: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None
    error: str | None = None
    result: GenerationResult | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    future: Future | None = field(default=None, repr=False)

    @property
    def period_id(self) -> int:
        return self.request.periodo_id

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def to_schema(self) -> GenerationJobOut:
        return GenerationJobOut(
            id=self.id,
            periodo_id=self.period_id,
            estado=self.state.value,
            progreso=self.progress,
            creado=self.created_at,
            finalizado=self.finished_at,
            error=self.error,
            resultado=self.result,
        )


class GenerationJobManager:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        settings: Settings | None = None,
        locks: RunLockRegistry | None = None,
        max_workers: int | None = None,
        job_ttl_seconds: int | None = None,
        max_finished_jobs: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.locks = locks or get_run_lock_registry()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or self.settings.generation_workers,
            thread_name_prefix="generation",
        )
        self.job_ttl_seconds = (
            job_ttl_seconds if job_ttl_seconds is not None else self.settings.generation_job_ttl_seconds
        )
        self.max_finished_jobs = (
            max_finished_jobs if max_finished_jobs is not None else self.settings.generation_job_max_finished
        )
        self._jobs: dict[str, GenerationJob] = {}
        self._lock = threading.Lock()

    def submit(self, payload: GenerationRequest | dict, *, persist: bool = True) -> GenerationJob:
        request = parse_generation_request(payload)
        if not self.locks.acquire(request.periodo_id):
            logger.warning("Rejected generation job for busy period_id=%s", request.periodo_id)
            raise ConcurrencyError(request.periodo_id)

        job = GenerationJob(id=str(uuid.uuid4()), request=request, persist=persist)
        with self._lock:
            self._evict_finished()
            self._jobs[job.id] = job
        try:
            job.future = self._executor.submit(self._run, job)
        except RuntimeError:
            self.locks.release(request.periodo_id)
            with self._lock:
                self._jobs.pop(job.id, None)
            raise
        logger.info("Generation job queued job_id=%s period_id=%s", job.id, job.period_id)
        return job

    def get(self, job_id: str) -> GenerationJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise ResourceNotFoundError("Generation job", job_id)
        return job

    def cancel(self, job_id: str) -> GenerationJob:
        """Ask a job to stop; the search ends at its next section boundary."""
        job = self.get(job_id)
        if not job.is_finished:
            job.cancel_event.set()
            logger.info("Cancellation requested job_id=%s period_id=%s", job.id, job.period_id)
        return job

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            if not job.is_finished:
                job.cancel_event.set()
        self._executor.shutdown(wait=wait)

    def _set_progress(self, job: GenerationJob, percent: int) -> None:
        with self._lock:
            job.progress = max(job.progress, min(100, percent))

    def _run(self, job: GenerationJob) -> None:
        with self._lock:
            job.state = RunState.running
        db = self.session_factory()
        try:
            service = GenerationService(db, settings=self.settings, locks=self.locks)
            result = service.run_unlocked(
                job.request,
                persist=job.persist,
                cancel_event=job.cancel_event,
                progress=lambda percent: self._set_progress(job, percent),
            )
        except AppError as exc:
            logger.warning("Generation job failed job_id=%s period_id=%s: %s", job.id, job.period_id, exc.message)
            with self._lock:
                job.state = RunState.failed
                job.error = exc.message
        except Exception as exc:
            logger.exception("Generation job crashed job_id=%s period_id=%s", job.id, job.period_id)
            with self._lock:
                job.state = RunState.failed
                job.error = str(exc) or exc.__class__.__name__
        else:
            with self._lock:
                job.result = result
                job.state = RunState(result.estado_ejecucion)
                job.progress = 100
        finally:
            db.close()
            with self._lock:
                job.finished_at = _utcnow()
                self._evict_finished()
            self.locks.release(job.period_id)

    def _evict_finished(self) -> None:
        """Drop finished jobs past the TTL, then the oldest beyond the cap. Caller holds ``_lock``."""
        now = _utcnow()
        finished = sorted(
            (job for job in self._jobs.values() if job.is_finished),
            key=lambda job: job.finished_at,
        )
        expired: list[GenerationJob] = []
        kept: list[GenerationJob] = []
        for job in finished:
            if (now - job.finished_at).total_seconds() >= self.job_ttl_seconds:
                expired.append(job)
            else:
                kept.append(job)
        overflow = max(0, len(kept) - max(0, self.max_finished_jobs))
        evicted = expired + kept[:overflow]
        for job in evicted:
            del self._jobs[job.id]
        if evicted:
            logger.debug("Evicted %s finished generation jobs", len(evicted))
