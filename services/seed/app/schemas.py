from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class SeedDetails(StrictModel):
    users_created: int = Field(alias="usersCreated")
    customers_created: int = Field(alias="customersCreated")
    invoices_created: int = Field(alias="invoicesCreated")
    revenue_created: int = Field(alias="revenueCreated")


class SeedResponse(StrictModel):
    message: str
    details: SeedDetails


class SeedErrorResponse(StrictModel):
    error: str
    # Raw error structure (type, stage, sqlstate, cause); admin-only endpoint.
    details: dict[str, Any]
    attempt: int


class ConnectionTestResponse(StrictModel):
    message: str
    result: list[dict[str, Any]]


class ConnectionEnv(StrictModel):
    has_url: bool = Field(alias="hasUrl")
    url_length: int | None = Field(default=None, alias="urlLength")
    # Password masked as ":****@".
    url: str | None = None


class ConnectionErrorResponse(StrictModel):
    error: str
    details: dict[str, Any]
    env: ConnectionEnv
