# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tasktracker import auth
from tasktracker.deps import get_db
from tasktracker.main import app
from tasktracker.models import Base


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Real PBKDF2, just far fewer rounds."""
    monkeypatch.setattr(auth, "PBKDF2_ITERS", 1000)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    """
    One in-memory SQLite database per test.

    StaticPool keeps a single connection so every Session (including the ones
    opened by the app's threadpool) sees the same database.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as s:
        yield s


@pytest.fixture()
def client(engine: Engine) -> Iterator[TestClient]:
    def _get_db() -> Iterator[Session]:
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def register(client: TestClient) -> Callable[..., dict[str, str]]:
    """Sign a user up and return their Authorization header."""

    def _register(username: str = "alice", email: str | None = None, password: str = "secret123") -> dict[str, str]:
        resp = client.post(
            "/api/auth/signup",
            json={"email": email or f"{username}@example.com", "username": username, "password": password},
        )
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register


@pytest.fixture()
def auth_headers(register) -> dict[str, str]:
    return register()
