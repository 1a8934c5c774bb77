"""Shared fixtures: in-memory database, sessions, task factory and API client."""
from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cadence.db.config import get_session
from cadence.main import app
from cadence.models.task import Task
from cadence.models.task_instance import TaskInstance  # noqa: F401
from cadence.utils.metrics import metrics_collector


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    """API client bound to the test database."""
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield


@pytest.fixture
def make_task(session):
    """Persist a task with a stored recurrence pattern."""
    def _make(pattern, anchor=date(2024, 6, 1), user_id="user-1", is_recurring=True, title="Water the plants"):
        task = Task(
            user_id=user_id,
            title=title,
            due_date=datetime.combine(anchor, time(9, 0)),
            is_recurring=is_recurring,
            recurrence_pattern=pattern,
        )
        session.add(task)
        session.commit()
        session.refresh(task)
        return task
    return _make
