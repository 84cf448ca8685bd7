import threading

import pytest

from academic_scheduler.core.exceptions import ConcurrencyError, GenerationValidationError, ResourceNotFoundError
from academic_scheduler.services.generation import GenerationService, parse_generation_request
from academic_scheduler.services.jobs import GenerationJobManager
from academic_scheduler.services.run_lock import RunLockRegistry
from academic_scheduler.services.solver import RunState


def test_lock_admits_one_run_per_period():
    locks = RunLockRegistry()

    assert locks.acquire(1)
    assert not locks.acquire(1)
    assert locks.acquire(2)
    assert locks.active_periods() == [1, 2]

    locks.release(1)
    assert not locks.is_locked(1)
    assert locks.acquire(1)


def test_hold_releases_on_error():
    locks = RunLockRegistry()

    with pytest.raises(ValueError):
        with locks.hold(7):
            assert locks.is_locked(7)
            raise ValueError("boom")

    assert not locks.is_locked(7)


def test_hold_rejects_a_busy_period():
    locks = RunLockRegistry()
    locks.acquire(3)

    with pytest.raises(ConcurrencyError) as exc_info:
        with locks.hold(3):
            pass

    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {"periodo_id": 3}


def test_concurrent_acquire_has_a_single_winner():
    locks = RunLockRegistry()
    barrier = threading.Barrier(8)
    wins = []

    def attempt():
        barrier.wait()
        if locks.acquire(5):
            wins.append(1)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(wins) == 1


def test_parse_generation_request_lists_field_errors():
    with pytest.raises(GenerationValidationError) as exc_info:
        parse_generation_request({"periodo_id": 0, "config": {"maximo_horas_diarias": 20, "extra": 1}})

    fields = {item["campo"] for item in exc_info.value.details["errores"]}
    assert {"periodo_id", "config.maximo_horas_diarias", "config.extra"} <= fields


def test_service_refuses_a_locked_period(db_session, seed_period):
    ids = seed_period(db_session)
    locks = RunLockRegistry()
    locks.acquire(ids["period_id"])

    with pytest.raises(ConcurrencyError):
        GenerationService(db_session, locks=locks).generate({"periodo_id": ids["period_id"]})


def test_service_keeps_the_stored_timetable_when_cancelled_early(db_session, seed_period):
    ids = seed_period(db_session)
    service = GenerationService(db_session, locks=RunLockRegistry())
    first = service.generate({"periodo_id": ids["period_id"]})

    event = threading.Event()
    event.set()
    cancelled = service.generate({"periodo_id": ids["period_id"]}, cancel_event=event)

    assert first.generacion_id is not None
    assert cancelled.generacion_id is None
    assert cancelled.estadoGeneracion == "Parcial"


def test_job_runs_to_completion_and_releases_the_lock(session_factory, seed_period):
    with session_factory() as db:
        ids = seed_period(db)
    locks = RunLockRegistry()
    manager = GenerationJobManager(session_factory, locks=locks, max_workers=1)
    try:
        job = manager.submit({"periodo_id": ids["period_id"]})
        job.future.result(timeout=30)

        finished = manager.get(job.id)
        assert finished.state == RunState.completed
        assert finished.progress == 100
        assert finished.result.cursos == 1
        assert finished.result.generacion_id is not None
        assert not locks.is_locked(ids["period_id"])
    finally:
        manager.shutdown()


def test_job_submission_fails_fast_for_a_busy_period(session_factory):
    locks = RunLockRegistry()
    locks.acquire(1)
    manager = GenerationJobManager(session_factory, locks=locks, max_workers=1)
    try:
        with pytest.raises(ConcurrencyError):
            manager.submit({"periodo_id": 1})
    finally:
        manager.shutdown()


def test_failed_job_records_the_error(session_factory):
    locks = RunLockRegistry()
    manager = GenerationJobManager(session_factory, locks=locks, max_workers=1)
    try:
        job = manager.submit({"periodo_id": 404})
        job.future.result(timeout=30)

        assert job.state == RunState.failed
        assert "404" in job.error
        assert job.to_schema().estado == "Failed"
        assert not locks.is_locked(404)
    finally:
        manager.shutdown()


def test_unknown_job_id(session_factory):
    manager = GenerationJobManager(session_factory, locks=RunLockRegistry(), max_workers=1)
    try:
        with pytest.raises(ResourceNotFoundError):
            manager.get("missing")
    finally:
        manager.shutdown()


def test_finished_jobs_beyond_the_cap_are_evicted(session_factory):
    manager = GenerationJobManager(session_factory, locks=RunLockRegistry(), max_workers=1, max_finished_jobs=1)
    try:
        first = manager.submit({"periodo_id": 404})
        first.future.result(timeout=30)
        assert manager.get(first.id) is first

        second = manager.submit({"periodo_id": 405})
        second.future.result(timeout=30)

        assert manager.get(second.id) is second
        with pytest.raises(ResourceNotFoundError):
            manager.get(first.id)
    finally:
        manager.shutdown()


def test_finished_jobs_expire_after_the_ttl(session_factory):
    manager = GenerationJobManager(session_factory, locks=RunLockRegistry(), max_workers=1, job_ttl_seconds=0)
    try:
        job = manager.submit({"periodo_id": 404})
        job.future.result(timeout=30)

        assert job.state == RunState.failed
        with pytest.raises(ResourceNotFoundError):
            manager.get(job.id)
    finally:
        manager.shutdown()


def test_retention_defaults_come_from_settings(session_factory):
    manager = GenerationJobManager(session_factory, locks=RunLockRegistry(), max_workers=1)
    try:
        assert manager.job_ttl_seconds == manager.settings.generation_job_ttl_seconds
        assert manager.max_finished_jobs == manager.settings.generation_job_max_finished
    finally:
        manager.shutdown()
