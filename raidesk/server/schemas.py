from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(ApiModel):
    status: str
    version: str
    time: str
    mode: str


class BackendStatusResponse(ApiModel):
    mode: str
    healthy: bool
    info: Optional[Dict[str, Any]] = None


class CreateSessionRequest(ApiModel):
    mock_mode: Optional[bool] = None


class MessageRequest(ApiModel):
    content: str = Field(min_length=1, max_length=4000)


class RefinePlanRequest(ApiModel):
    modifications: str = Field(min_length=1, max_length=4000)


class SessionListResponse(ApiModel):
    sessions: List[str]


class CancelResponse(ApiModel):
    cancelled: bool
