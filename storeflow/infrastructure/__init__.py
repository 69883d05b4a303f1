"""Infrastructure: SQL persistence, mail, webhook and Redis adapters, composition."""
