"""Shared cross-cutting helpers (telemetry, utilities)."""
