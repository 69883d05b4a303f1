"""SQLAlchemy async persistence for workflows and entity records."""
