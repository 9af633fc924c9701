"""
Pydantic schemas for the Extendr HTTP API.
"""

import time
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class HealthResponse(BaseModel):
    """Response body for /health."""

    status: str = "healthy"
    version: str
    provider: str
    tracing: bool = False


class CreateSessionRequest(BaseModel):
    """Request body for POST /v1/sessions."""

    provider: Optional[str] = Field(
        default=None, description="Provider type; defaults to the configured provider"
    )
    model: Optional[str] = Field(default=None, description="Model override")
    api_key: Optional[str] = Field(
        default=None, description="API key; defaults to the configured or environment key"
    )
    files: dict[str, str] = Field(
        default_factory=dict, description="Initial project files, path -> content"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "provider": "openai",
                "model": "gpt-4o",
                "files": {"manifest.json": '{"manifest_version": 3}'},
            }
        }
    }


class SessionInfo(BaseModel):
    """Summary of one agent session."""

    id: str
    provider: str
    model: str
    created: int = Field(default_factory=lambda: int(time.time()))
    busy: bool = False
    message_count: int = 0
    file_count: int = 0


class ChatRequest(BaseModel):
    """Request body for POST /v1/sessions/{id}/chat."""

    message: str = Field(..., description="The user's message", min_length=1)

    @field_validator("message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ToolCallInfo(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResultInfo(BaseModel):
    tool_call_id: str
    name: str
    success: bool
    content: str
    error: Optional[str] = None


class ChatResponse(BaseModel):
    """Outcome of one agent run."""

    session_id: str
    response: str
    state: str
    iterations: int = 0
    tool_calls: list[ToolCallInfo] = Field(default_factory=list)
    tool_results: list[ToolResultInfo] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)
    build_triggered: bool = False
    errors: list[str] = Field(default_factory=list)


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool


class FileListResponse(BaseModel):
    session_id: str
    files: list[str] = Field(default_factory=list)


class ProviderInfoResponse(BaseModel):
    type: str
    display_name: str
    key_prefix: str
    key_placeholder: str
    default_model: str
    models: list[str] = Field(default_factory=list)


class ProviderListResponse(BaseModel):
    object: str = "list"
    data: list[ProviderInfoResponse]


class ErrorResponse(BaseModel):
    detail: str
