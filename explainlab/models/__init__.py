from explainlab.models.query import (
    ParamRange,
    Protocol,
    QueryPool,
    QueryTemplate,
    split_placeholders,
)
from explainlab.models.responses import (
    BatchResponse,
    ErrorResponse,
    LockedOrder,
    Order,
    QueryRunResponse,
    SlowQueryResponse,
    StatementOutcomeResponse,
    TemplateInfo,
    TemplateListResponse,
    User,
)

__all__ = [
    "BatchResponse",
    "ErrorResponse",
    "LockedOrder",
    "Order",
    "ParamRange",
    "Protocol",
    "QueryPool",
    "QueryRunResponse",
    "QueryTemplate",
    "SlowQueryResponse",
    "StatementOutcomeResponse",
    "TemplateInfo",
    "TemplateListResponse",
    "User",
    "split_placeholders",
]
