# tests/test_setup.py

from __future__ import annotations

import logging

import pytest

from tasktracker import db
from tasktracker.logging_setup import setup_logging


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_setup_logging_installs_one_filtered_handler(restore_root_logger):
    root = restore_root_logger
    setup_logging("DEBUG")
    setup_logging("DEBUG")  # idempotent

    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert root.level == logging.DEBUG

    def record(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert handler.filter(record("tasktracker.tasks", logging.DEBUG))
    assert not handler.filter(record("sqlalchemy.engine", logging.INFO))
    assert handler.filter(record("sqlalchemy.engine", logging.WARNING))


def test_get_engine_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        db.get_engine()


def test_get_engine_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    engine = db.get_engine()
    try:
        assert engine.url.drivername == "sqlite"
    finally:
        engine.dispose()
