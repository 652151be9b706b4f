"""Pydantic schemas package.

Folder intent:
  common.py  — CamelModel base + HealthResponse (all schemas inherit CamelModel)
  entity.py  — entity request DTOs, entity / lifecycle / transition responses
"""
