"""Composition root: builds a WorkflowEngine from Settings.

All concrete adapters are created here (SQL repository and entity store,
SMTP mailer, httpx webhook client, Redis broadcast channel) and injected
into the application services. Nothing else constructs infrastructure.
"""

from __future__ import annotations

from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.application.services.scheduler import WorkflowScheduler
from storeflow.application.services.workflow_engine import WorkflowEngine
from storeflow.core.config import Settings
from storeflow.infrastructure.external.email.smtp_mailer import build_mailer
from storeflow.infrastructure.external.webhook.httpx_client import HttpxWebhookClient
from storeflow.infrastructure.messaging.redis_broadcast import RedisBroadcastChannel
from storeflow.infrastructure.persistence.database import create_engine_and_sessionmaker
from storeflow.infrastructure.persistence.repositories.entity_store import SqlEntityStore
from storeflow.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.telemetry.telemetry import TelemetryConfig
from storeflow.shared.utils.clock import IClock, SystemClock

logger = get_logger(__name__)


async def build_workflow_engine(
    settings: Settings,
    clock: IClock | None = None,
    telemetry: TelemetryConfig | None = None,
) -> WorkflowEngine:
    """Wire every adapter and service; the returned engine is not started yet."""
    clock = clock or SystemClock()
    db_engine, session_factory = create_engine_and_sessionmaker(settings)
    if telemetry is not None:
        telemetry.instrument_sqlalchemy(db_engine)

    repository = WorkflowRepository(
        session_factory, clock=clock, timezone=settings.scheduler_timezone
    )
    webhook_client = HttpxWebhookClient(timeout_seconds=settings.webhook_timeout_seconds)

    broadcast: RedisBroadcastChannel | None = None
    if settings.redis_enabled:
        broadcast = RedisBroadcastChannel(
            settings=settings, channel_prefix=settings.notification_channel_prefix
        )
        await broadcast.connect()
        if telemetry is not None:
            telemetry.instrument_redis()

    interpreter = ActionInterpreter(
        entity_store=SqlEntityStore(session_factory),
        webhook_client=webhook_client,
        mailer=build_mailer(settings),
        clock=clock,
        max_depth=settings.workflow_max_depth,
    )
    dispatcher = WorkflowDispatcher(
        repository,
        interpreter,
        ExecutionRecorder(repository, clock=clock),
        workers=settings.dispatcher_workers,
        queue_size=settings.dispatcher_queue_size,
    )
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = WorkflowScheduler(
            repository,
            dispatcher,
            clock=clock,
            tick_seconds=settings.scheduler_tick_seconds,
            timezone=settings.scheduler_timezone,
            broadcast_channel=broadcast,
        )

    on_shutdown = [webhook_client.aclose]
    if broadcast is not None:
        on_shutdown.append(broadcast.disconnect)
    on_shutdown.append(db_engine.dispose)

    logger.info(
        "Workflow engine built (workers=%d, scheduler=%s, mail=%s)",
        settings.dispatcher_workers,
        "on" if scheduler else "off",
        "on" if settings.mail_enabled else "off",
    )
    return WorkflowEngine(
        repository,
        dispatcher,
        scheduler=scheduler,
        broadcast_channel=broadcast,
        on_shutdown=on_shutdown,
    )
