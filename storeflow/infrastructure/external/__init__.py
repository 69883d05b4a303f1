"""Adapters for external effects: SMTP mail and HTTP webhooks."""
