"""Base schema for the API: camelCase on the wire, snake_case in Python."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Parent of every request/response schema. Also reads ORM rows."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)


class HealthResponse(CamelModel):
    status: str = "ok"
    app: str
    env: str
    lifecycles: list[str]
