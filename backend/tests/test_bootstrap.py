import pytest
from sqlalchemy import create_engine, text

from academic_scheduler.db import bootstrap
from academic_scheduler.db.base import Base
from academic_scheduler.db.session import _engine_options


def _raise_error(message: str):
    raise RuntimeError(message)


def test_schema_bootstrap_raises_on_inspection_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "missing_schema_items", lambda connection: _raise_error("inspection failed"))

    with pytest.raises(RuntimeError, match="Schema bootstrap failed"):
        bootstrap.ensure_schema()


def test_missing_schema_items_reports_tables_and_columns():
    engine = create_engine("sqlite+pysqlite://", **_engine_options("sqlite+pysqlite://"))
    Base.metadata.create_all(bind=engine)
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE generation_runs"))
        connection.execute(text("ALTER TABLE rooms RENAME COLUMN room_type TO kind"))

    with engine.connect() as connection:
        missing_tables, missing_columns = bootstrap.missing_schema_items(connection)

    assert missing_tables == ["generation_runs"]
    assert missing_columns == {"rooms": ["room_type"]}
    engine.dispose()


def test_engine_options_by_backend():
    assert _engine_options("postgresql+psycopg://u:p@localhost/db") == {"pool_pre_ping": True}
    memory = _engine_options("sqlite+pysqlite://")
    assert memory["connect_args"] == {"check_same_thread": False}
    assert "poolclass" in memory
    assert "poolclass" not in _engine_options("sqlite:///./scheduler.db")
