"""Pytest fixtures and configuration for taskorch tests."""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
import uuid

from taskorch.database.database import Base
from taskorch.database.repository import SqlTaskStore
from taskorch.database.points_repository import PointsRepository
from taskorch.engine.orchestrator import TaskOrchestrator
from taskorch.dispatch import InstructionDispatcher
from taskorch.models.query import TaskQuery
from taskorch.models.task import Task, TaskStatus, Priority
from taskorch.notifications import InMemoryNotifier


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Fixed clock for deterministic notification and recurrence checks (a Monday)
NOW = datetime(2024, 3, 4, 10, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    from taskorch.database import models  # noqa: F401

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_store(db_session: Session):
    """Create a SqlTaskStore instance for testing."""
    return SqlTaskStore(db_session)


@pytest.fixture
def points_repository(db_session: Session):
    """Create a PointsRepository instance for testing."""
    return PointsRepository(db_session)


@pytest.fixture
def test_user_id():
    """Test user ID for multi-user testing."""
    return "test-user-123"


@pytest.fixture
def sample_task_base(test_user_id, now):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "user_id": test_user_id,
        "title": "Test Task",
        "description": "Test description",
        "status": TaskStatus.PENDING,
        "priority": Priority.MEDIUM,
        "category": None,
        "tags": [],
        "due_date": None,
        "reminder_date": None,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def make_task(sample_task_base):
    """Factory for tasks with a fresh id and overridden fields."""
    def _make(**overrides):
        data = {**sample_task_base, "id": str(uuid.uuid4())}
        data.update(overrides)
        return Task(**data)
    return _make


class InMemoryTaskStore:
    """TaskStore double that keeps tasks in a dict and records calls."""

    def __init__(self):
        self.tasks = {}
        self.calls = []

    def fetch(self, query: TaskQuery):
        tasks = sorted(self.tasks.values(), key=lambda t: (t.created_at, t.id))
        return [t for t in tasks if query.matches(t)][:query.limit]

    def fetch_one(self, task_id):
        return self.tasks.get(task_id)

    def save(self, task):
        self.calls.append(("save", task.id))
        self.tasks[task.id] = task
        return task

    def update(self, task):
        self.calls.append(("update", task.id))
        self.tasks[task.id] = task
        return task

    def batch_save(self, tasks):
        return [self.save(t) for t in tasks]

    def delete(self, task_id):
        self.calls.append(("delete", task_id))
        return self.tasks.pop(task_id, None) is not None

    def batch_delete(self, task_ids):
        return sum(1 for task_id in task_ids if self.delete(task_id))


@pytest.fixture
def memory_store():
    return InMemoryTaskStore()


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def orchestrator(now):
    """Orchestrator with a fixed clock and no handlers."""
    return TaskOrchestrator(clock=lambda: now)


@pytest.fixture
def wired_orchestrator(now, memory_store, notifier):
    """Orchestrator whose results are dispatched to an in-memory store and notifier."""
    return TaskOrchestrator(
        handlers=[InstructionDispatcher(memory_store, notifier)],
        clock=lambda: now,
    )


@pytest.fixture
def future(now):
    """Helper returning `now` shifted by the given number of days."""
    def _future(days=0, hours=0):
        return now + timedelta(days=days, hours=hours)
    return _future


@pytest.fixture
def test_client(db_session: Session, notifier):
    """Create a FastAPI test client with overridden database, orchestrator and notifier."""
    from taskorch.api.app import app, get_notifier, get_orchestrator
    from taskorch.database.database import get_db

    orchestrator = TaskOrchestrator()

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
