"""Pydantic models for HTTP API requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from installer.models.progress import ProgressEvent
from installer.models.services import InstallMethod


class IntelligenceKeys(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    anthropic_key: Optional[str] = Field(None, alias="anthropicKey")
    openai_key: Optional[str] = Field(None, alias="openaiKey")


class AuthTokens(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gologin_token: Optional[str] = Field(None, alias="gologinToken")
    apify_token: Optional[str] = Field(None, alias="apifyToken")
    telegram_token: Optional[str] = Field(None, alias="telegramToken")


class InstallRequest(BaseModel):
    """POST /api/v1.0/install payload.

    Example:
        {
            "installMethod": "npm",
            "identity": {"name": "Atlas"},
            "models": {"primary": "anthropic/claude-sonnet"},
            "intelligence": {"anthropicKey": "sk-ant-..."},
            "auth": {"apifyToken": "apify_api_..."},
            "modules": {"telegram": false}
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    install_method: InstallMethod = Field(
        InstallMethod.NPM,
        alias="installMethod",
        description="npm, script, or git",
    )
    identity: dict[str, Any] = Field(default_factory=dict, description="Agent identity")
    models: dict[str, Any] = Field(default_factory=dict, description="Model selection")
    intelligence: IntelligenceKeys = Field(default_factory=IntelligenceKeys)
    auth: AuthTokens = Field(default_factory=AuthTokens)
    modules: dict[str, bool] = Field(default_factory=dict, description="Enabled modules")


class ProgressResponse(BaseModel):
    """GET /api/v1.0/progress response."""

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: Optional[ProgressEvent] = Field(None, description="Latest progress event")


class SuccessResponse(BaseModel):
    """Success response for command endpoints.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(default=200, description="Application-level status code (200)")
    msg: str = Field(default="success", description="Success message")
    data: Optional[Any] = Field(None, description="Optional response data")


class ErrorResponse(BaseModel):
    """Error response for all endpoints.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(..., description="Application-level error code (400/409/500)")
    msg: str = Field(..., description="Error message with error code prefix")
