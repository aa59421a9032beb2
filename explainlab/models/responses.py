"""
Pydantic response models for the on-demand query endpoints.

These define the JSON contract of each route.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    id: int
    name: str
    email: str


class Order(BaseModel):
    id: int
    user_id: int
    product: str
    amount: float


class LockedOrder(Order):
    """Order row read and locked with SELECT ... FOR UPDATE."""

    locked: bool = True


class SlowQueryResponse(BaseModel):
    slept_seconds: float
    result: Optional[str] = None


class TemplateInfo(BaseModel):
    name: str
    protocol: str
    expect_error: bool
    description: str = ""
    param_count: int = 0


class TemplateListResponse(BaseModel):
    templates: list[TemplateInfo]
    total: int


class QueryRunResponse(BaseModel):
    """Result of running one pool template on demand."""

    template: str
    sql: str
    protocol: str
    row_count: int
    # Simple-protocol templates only return the command status row.
    rows: list[dict[str, Any]] = Field(default_factory=list)


class StatementOutcomeResponse(BaseModel):
    template: str
    ok: bool
    row_count: int = 0
    error: Optional[str] = None
    sqlstate: Optional[str] = None


class BatchResponse(BaseModel):
    batch: int
    requested: int
    succeeded: int
    failed: int
    connection_error: Optional[str] = None
    outcomes: list[StatementOutcomeResponse] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    status: str = "error"
    error: str
    error_type: str
    sqlstate: Optional[str] = None
    endpoint: Optional[str] = None
