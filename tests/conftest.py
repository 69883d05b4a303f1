"""Pytest configuration and fixtures for storeflow.

Unit tests run the engine against in-memory fakes (clock, mailer, webhook
client, broadcast channel, entity store, workflow repository). Repository
and API tests use an in-memory SQLite database through aiosqlite, so no
external services are needed. Env is set before any storeflow import reads
Settings.
"""

import asyncio
import os
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storeflow.application.dtos.workflow import (
    ExecutionContext,
    MailMessage,
    WebhookResponse,
)
from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.application.services.workflow_engine import WorkflowEngine
from storeflow.core.config import get_settings
from storeflow.domain.entities.workflow import LastError, Trigger, Workflow
from storeflow.domain.enums import EntityKind, TriggerType
from storeflow.domain.exceptions import ResourceNotFoundException, WebhookFailedError
from storeflow.infrastructure.persistence.database import Base
from storeflow.infrastructure.persistence import models  # noqa: F401
from storeflow.infrastructure.persistence.repositories.entity_store import SqlEntityStore
from storeflow.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from storeflow.shared.utils.generators import generate_cuid

get_settings.cache_clear()

STORE_ID = "store-1"


class FakeClock:
    """IClock whose sleep() advances now() instantly."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        self.sent.append(message)


class FakeWebhookClient:
    """Records requests; ``statuses`` maps url to the status to answer with."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.statuses: dict[str, int] = {}

    async def request(
        self, method: str, url: str, headers: dict[str, str], body: str | None
    ) -> WebhookResponse:
        self.calls.append({"method": method, "url": url, "headers": headers, "body": body})
        status = self.statuses.get(url, 200)
        if not 200 <= status < 300:
            raise WebhookFailedError(status, url=url)
        return WebhookResponse(status_code=status)


class FakeBroadcast:
    def __init__(self) -> None:
        self.emitted: list[tuple[str, str, dict[str, Any]]] = []

    async def emit(self, room: str, event: str, payload: dict[str, Any]) -> None:
        self.emitted.append((room, event, payload))


class InMemoryEntityStore:
    def __init__(self) -> None:
        self.records: dict[tuple[EntityKind, str], dict[str, Any]] = {}

    def add(self, kind: EntityKind, entity_id: str, **fields: Any) -> None:
        self.records[(kind, entity_id)] = {"id": entity_id, **fields}

    async def find(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        try:
            return dict(self.records[(kind, entity_id)])
        except KeyError:
            raise ResourceNotFoundException(kind.value, entity_id) from None

    async def update(
        self, kind: EntityKind, entity_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        record = await self.find(kind, entity_id)
        record.update(patch)
        self.records[(kind, entity_id)] = record
        return dict(record)

    async def create(self, kind: EntityKind, data: dict[str, Any]) -> dict[str, Any]:
        entity_id = generate_cuid()
        self.records[(kind, entity_id)] = {"id": entity_id, **data}
        return {"id": entity_id, **data}


class InMemoryWorkflowRepository:
    """Workflow repository over a dict; mirrors the SQL ordering and filters."""

    def __init__(self) -> None:
        self.workflows: dict[str, Workflow] = {}
        self.recorded: list[tuple[str, bool, LastError | None]] = []
        self.next_runs: dict[str, datetime | None] = {}

    def add(self, workflow: Workflow) -> Workflow:
        self.workflows[workflow.id] = workflow
        return workflow

    async def active_for(self, store_id: str, trigger_type: TriggerType | str) -> list[Workflow]:
        trigger = TriggerType(trigger_type)
        matches = [
            w
            for w in self.workflows.values()
            if w.is_executable and w.store_id == store_id and w.trigger.type == trigger
        ]
        epoch = datetime.min.replace(tzinfo=UTC)
        return sorted(matches, key=lambda w: (w.created_at or epoch, w.id), reverse=True)

    async def due_scheduled(self, now: datetime) -> list[Workflow]:
        return [
            w
            for w in self.workflows.values()
            if w.is_executable
            and w.is_scheduled
            and w.trigger.schedule is not None
            and w.trigger.schedule.next_run is not None
            and w.trigger.schedule.next_run <= now
        ]

    async def record_execution(
        self,
        workflow_id: str,
        success: bool,
        error: LastError | None = None,
        executed_at: datetime | None = None,
    ) -> None:
        self.recorded.append((workflow_id, success, error))
        workflow = self.workflows[workflow_id]
        stats = workflow.stats
        workflow.stats = replace(
            stats,
            total_executions=stats.total_executions + 1,
            successful_executions=stats.successful_executions + (1 if success else 0),
            failed_executions=stats.failed_executions + (0 if success else 1),
            last_executed_at=executed_at,
            last_error=error if (not success and error is not None) else stats.last_error,
        )

    async def save(self, workflow: Workflow) -> Workflow:
        return self.add(workflow)

    async def get(self, workflow_id: str) -> Workflow | None:
        return self.workflows.get(workflow_id)

    async def set_next_run(self, workflow_id: str, next_run: datetime | None) -> None:
        self.next_runs[workflow_id] = next_run
        workflow = self.workflows[workflow_id]
        if workflow.trigger.schedule is not None:
            schedule = replace(workflow.trigger.schedule, next_run=next_run)
            workflow.trigger = replace(workflow.trigger, schedule=schedule)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 2, 8, 59, 30, tzinfo=UTC))


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def webhook_client() -> FakeWebhookClient:
    return FakeWebhookClient()


@pytest.fixture
def broadcast() -> FakeBroadcast:
    return FakeBroadcast()


@pytest.fixture
def entity_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def workflow_repo() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def ctx(broadcast: FakeBroadcast) -> ExecutionContext:
    return ExecutionContext(
        store_id=STORE_ID,
        organization_id="org-1",
        user_id="user-1",
        broadcast_channel=broadcast,
    )


@pytest.fixture
def interpreter(
    entity_store: InMemoryEntityStore,
    webhook_client: FakeWebhookClient,
    mailer: FakeMailer,
    clock: FakeClock,
) -> ActionInterpreter:
    return ActionInterpreter(
        entity_store=entity_store,
        webhook_client=webhook_client,
        mailer=mailer,
        clock=clock,
    )


@pytest.fixture
async def dispatcher(
    workflow_repo: InMemoryWorkflowRepository,
    interpreter: ActionInterpreter,
    clock: FakeClock,
) -> WorkflowDispatcher:
    """Started dispatcher; stopped after the test."""
    dispatcher = WorkflowDispatcher(
        workflow_repo,
        interpreter,
        ExecutionRecorder(workflow_repo, clock=clock),
        workers=2,
    )
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
async def session_factory() -> async_sessionmaker[AsyncSession]:
    """In-memory SQLite with the full schema; one connection shared by all sessions."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def file_session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """File-backed SQLite with a real pool, so concurrent sessions get their own connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'workflows.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def sql_workflow_repo(
    session_factory: async_sessionmaker[AsyncSession], clock: FakeClock
) -> WorkflowRepository:
    return WorkflowRepository(session_factory, clock=clock)


@pytest.fixture
def sql_entity_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlEntityStore:
    return SqlEntityStore(session_factory)


@pytest.fixture
async def engine(
    sql_workflow_repo: WorkflowRepository,
    sql_entity_store: SqlEntityStore,
    webhook_client: FakeWebhookClient,
    mailer: FakeMailer,
    broadcast: FakeBroadcast,
    clock: FakeClock,
) -> WorkflowEngine:
    """Started engine over SQLite and fake transports (no scheduler)."""
    interpreter = ActionInterpreter(
        entity_store=sql_entity_store,
        webhook_client=webhook_client,
        mailer=mailer,
        clock=clock,
    )
    dispatcher = WorkflowDispatcher(
        sql_workflow_repo,
        interpreter,
        ExecutionRecorder(sql_workflow_repo, clock=clock),
        workers=1,
    )
    engine = WorkflowEngine(sql_workflow_repo, dispatcher, broadcast_channel=broadcast)
    await engine.start()
    yield engine
    await engine.stop()


@pytest.fixture
async def client(engine: WorkflowEngine) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI) with the test engine on app.state.

    ASGITransport does not run the lifespan, so the engine is attached directly.
    """
    from storeflow.main import create_app

    app = create_app()
    app.state.engine = engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def store_headers() -> dict[str, str]:
    return {"X-Store-ID": STORE_ID, "X-Organization-ID": "org-1", "X-User-ID": "user-1"}


@pytest.fixture
def make_workflow():
    """Factory for Workflow entities with distinct, increasing created_at."""
    counter = iter(range(1, 10_000))

    def _make(
        trigger_type: TriggerType = TriggerType.MANUAL,
        actions: tuple = (),
        conditions: tuple = (),
        schedule=None,
        store_id: str = STORE_ID,
        **fields: Any,
    ) -> Workflow:
        n = next(counter)
        fields.setdefault("id", f"wf-{n}")
        fields.setdefault("name", f"Workflow {n}")
        fields.setdefault("created_at", datetime(2025, 1, 1, tzinfo=UTC) + timedelta(minutes=n))
        return Workflow(
            store_id=store_id,
            trigger=Trigger(type=trigger_type, conditions=tuple(conditions), schedule=schedule),
            actions=tuple(actions),
            **fields,
        )

    return _make
