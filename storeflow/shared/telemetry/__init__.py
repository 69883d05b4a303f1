"""Logging and OpenTelemetry tracing."""

from storeflow.shared.telemetry.logging import get_logger, setup_logging
from storeflow.shared.telemetry.tracing import add_span_attributes, traced

__all__ = ["get_logger", "setup_logging", "traced", "add_span_attributes"]
