"""Shared pytest fixtures for the Flowpilot test suite.

Provides:
- A file-backed async SQLite database per test (no PostgreSQL needed)
- Session factory and SQL execution store bound to it
- A recording fake integration adapter (no network)
- An execution engine wired to the above
- FastAPI test client (httpx.AsyncClient) using the same collaborators
- Pre-seeded test data (user, workflows, integrations)
"""

import os
import tempfile
from typing import Any, AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

# Override settings BEFORE any app imports
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'flowpilot-test.db')}",
)
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("EXECUTION_BACKEND", "inprocess")
os.environ.setdefault("MONTHLY_EXECUTION_LIMIT", "0")
os.environ.setdefault("LOG_FORMAT", "text")

from db.base import Base  # noqa: E402
from db.database import create_db_engine, create_session_factory  # noqa: E402
from integrations.adapter import IntegrationAdapter  # noqa: E402
from services.execution_store import SqlExecutionStore  # noqa: E402
from tasks.registry import StepRegistry  # noqa: E402
from workflow.engine import ExecutionEngine  # noqa: E402


# ---------------------------------------------------------------------------
# Fake integrations
# ---------------------------------------------------------------------------

class FakeIntegrationAdapter(IntegrationAdapter):
    """Records every outbound call and returns canned responses."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.http_response: Any = {"status": "received"}
        self.sentiment: dict = {"label": "POSITIVE", "score": 0.97}
        self.error: Optional[Exception] = None

    def _record(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    def calls_to(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def send_email(self, credential, to, subject, body):
        self._record("send_email", credential=credential, to=to, subject=subject, body=body)
        return {"id": "msg-1", "threadId": "thread-1"}

    async def post_chat_message(self, credential, channel, text):
        self._record("post_chat_message", credential=credential, channel=channel, text=text)
        return {"ok": True, "channel": channel, "ts": "1700000000.000100"}

    async def append_row(self, credential, resource_id, range_, values):
        self._record("append_row", credential=credential, resource_id=resource_id, range_=range_, values=values)
        return {"updates": {"updatedRows": 1}}

    async def http_request(self, url, method="POST", headers=None, body=None):
        self._record("http_request", url=url, method=method, headers=headers, body=body)
        return self.http_response

    async def classify_sentiment(self, text):
        self._record("classify_sentiment", text=text)
        return dict(self.sentiment)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create an async engine on a fresh SQLite file for each test."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    # Import all models so Base.metadata knows about them
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> SqlExecutionStore:
    return SqlExecutionStore(session_factory)


@pytest.fixture
def adapter() -> FakeIntegrationAdapter:
    return FakeIntegrationAdapter()


@pytest.fixture
def engine(store, adapter) -> ExecutionEngine:
    return ExecutionEngine(store=store, adapter=adapter, registry=StepRegistry())


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def dispatcher(engine):
    from services.workflow_service import ExecutionDispatcher

    return ExecutionDispatcher(backend="inprocess", engine=engine)


@pytest.fixture
def workflow_service(store, engine, dispatcher):
    from app.config import get_settings
    from services.workflow_service import WorkflowService

    return WorkflowService(
        store=store,
        engine=engine,
        dispatcher=dispatcher,
        settings=get_settings(),
    )


@pytest_asyncio.fixture
async def app(db_engine, session_factory, workflow_service, dispatcher):
    """Create a FastAPI app instance wired to the test database."""
    # Patch the database module to use our test engine
    import db.database as db_mod
    original_engine = db_mod.engine
    original_session = db_mod.AsyncSessionLocal

    db_mod.engine = db_engine
    db_mod.AsyncSessionLocal = session_factory

    from app.dependencies import get_workflow_service
    from app.main import create_app

    test_app = create_app()
    test_app.dependency_overrides[get_workflow_service] = lambda: workflow_service

    yield test_app

    # Let background executions finish before the engine is disposed
    await dispatcher.drain()
    db_mod.engine = original_engine
    db_mod.AsyncSessionLocal = original_session


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Test data fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_user(session_factory):
    """Create a workflow owner."""
    from db.models.user import User

    user = User(
        id=str(uuid4()),
        email=f"test-{uuid4().hex[:8]}@example.com",
        display_name="Test User",
    )
    async with session_factory() as session:
        session.add(user)
        await session.commit()
    return user


@pytest.fixture
def create_workflow(session_factory, test_user):
    """Factory: persist a workflow owned by ``test_user``."""
    from db.models.workflow import Workflow

    async def _create(definition, is_active: bool = True, user_id: Optional[str] = None, name: str = "Test Workflow"):
        workflow = Workflow(
            id=str(uuid4()),
            user_id=user_id or test_user.id,
            name=name,
            description="A workflow for testing",
            definition=definition,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(workflow)
            await session.commit()
        return workflow

    return _create


@pytest.fixture
def create_integration(session_factory, test_user):
    """Factory: persist an integration owned by ``test_user``."""
    from db.models.integration import Integration

    async def _create(integration_type: str, access_token: str = "token-123", is_active: bool = True):
        integration = Integration(
            id=str(uuid4()),
            user_id=test_user.id,
            name=f"{integration_type.title()} account",
            type=integration_type,
            access_token=access_token,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(integration)
            await session.commit()
        return integration

    return _create


@pytest.fixture
def list_executions(session_factory):
    """Load all executions of a workflow, oldest first."""
    from db.models.execution import WorkflowExecution

    async def _list(workflow_id: str):
        async with session_factory() as session:
            result = await session.execute(
                select(WorkflowExecution)
                .where(WorkflowExecution.workflow_id == workflow_id)
                .order_by(WorkflowExecution.started_at)
            )
            return list(result.scalars().all())

    return _list


@pytest.fixture
def simple_definition() -> dict:
    """Webhook trigger followed by a logger step."""
    return {
        "steps": [
            {"id": "t1", "type": "trigger", "blockType": "webhook-trigger", "config": {}},
            {"id": "l1", "type": "utility", "blockType": "logger",
             "config": {"message": "Hello {{name}}"}},
        ],
        "connections": [{"from": "t1", "to": "l1"}],
    }
