"""Application layer: ports, DTOs and the workflow engine services."""
