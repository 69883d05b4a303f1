"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring. The workflow engine is built
from settings, started, and stored on ``app.state.engine``; routes reach
it through a dependency rather than a module-level singleton.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storeflow.core.config import get_settings
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup order: telemetry (if enabled), engine build, engine start.
    Shutdown order: engine stop (scheduler, dispatcher, clients, DB
    engine), telemetry shutdown.
    """
    settings = get_settings()

    # ---- Startup ----
    telemetry = None
    if settings.telemetry_enabled:
        from storeflow.shared.telemetry.telemetry import TelemetryConfig

        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        telemetry.instrument_fastapi(app)
        logger.info("Telemetry initialized")
    app.state.telemetry = telemetry

    from storeflow.infrastructure.composition import build_workflow_engine

    engine = await build_workflow_engine(settings, telemetry=telemetry)
    await engine.start()
    app.state.engine = engine

    yield

    # ---- Shutdown ----
    await engine.stop()
    app.state.engine = None

    if telemetry is not None:
        telemetry.shutdown()
        app.state.telemetry = None
        logger.info("Telemetry shutdown complete")
