"""Common schemas used across the application."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str = Field(..., description="Error code (e.g., TOURNAMENT_FULL)")
    kind: str = Field(..., description="validation | precondition | transient | conflict")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorDetail


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str = "Operation completed successfully"


class UserProfileResponse(BaseSchema):
    """Signed-in user's profile."""

    id: str
    email: str
    email_verified: bool = Field(..., alias="emailVerified")
    role: str
    wallet_balance: int = Field(..., alias="walletBalance")
    joined_tournament_ids: list[str] = Field(default_factory=list, alias="joinedTournamentIds")


class RoleUpdateRequest(BaseSchema):
    role: str = Field(..., pattern="^(user|admin)$")


class UploadResponse(BaseModel):
    url: str
