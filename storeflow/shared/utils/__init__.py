"""Utility helpers: datetime, clock, id generation."""
