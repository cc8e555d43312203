"""Shared fixtures: a temporary SQLite database, users, tasks and a test client."""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"taskboard_files_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["UPLOAD_CHUNK_SIZE_BYTES"] = "16"
os.environ.pop("UPLOAD_MAX_BYTES", None)
os.environ.pop("APP_TIMEZONE", None)

from taskboard.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from taskboard.domain.entities import ADMIN_ROLE_ALIAS, Task, User  # noqa: E402
from taskboard.infrastructure.chunk_store import ChunkStore  # noqa: E402
from taskboard.infrastructure.database import (  # noqa: E402
    Base,
    SessionLocal,
    engine,
    initialize_database,
)
from taskboard.infrastructure.repositories import (  # noqa: E402
    RoleRepository,
    TaskRepository,
    UserRepository,
)
from taskboard.infrastructure.security import (  # noqa: E402
    create_user_access_token,
    get_password_hash,
)

STORE_CHUNK_SIZE = 8


@pytest.fixture(autouse=True)
def reset_database() -> Iterator[None]:
    """Ensure every test starts from empty tables."""

    Base.metadata.drop_all(bind=engine)
    initialize_database()
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def chunk_store() -> Iterator[ChunkStore]:
    with ChunkStore(SessionLocal, chunk_size=STORE_CHUNK_SIZE) as store:
        yield store


@pytest.fixture(scope="session")
def password_hash() -> str:
    return get_password_hash("StrongPass123")


def _create_user(session, *, email: str, alias: str, password_hash: str) -> User:
    role = RoleRepository(session).get_or_create(alias=alias, name=alias.title())
    return UserRepository(session).create(
        User(
            id=None,
            role=role,
            name=email.split("@")[0],
            email=email,
            password=password_hash,
            created_at=None,
            is_active=True,
        )
    )


@pytest.fixture()
def admin_user(session, password_hash: str) -> User:
    return _create_user(
        session, email="admin@example.com", alias=ADMIN_ROLE_ALIAS, password_hash=password_hash
    )


@pytest.fixture()
def member_user(session, password_hash: str) -> User:
    return _create_user(
        session, email="member@example.com", alias="user", password_hash=password_hash
    )


@pytest.fixture()
def make_task(session) -> Callable[..., Task]:
    """Return a factory inserting tasks with fresh identifiers."""

    def _make_task(title: str = "Prepare release", **fields) -> Task:
        return TaskRepository(session).create(Task(id=uuid4().hex, title=title, **fields))

    return _make_task


@pytest.fixture()
def client():
    pytest.importorskip("fastapi")
    from fastapi.testclient import TestClient

    from main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_user_access_token(user)}"}

    return _headers
