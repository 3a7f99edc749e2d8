"""Response models for API endpoints."""
from pydantic import BaseModel, Field
from typing import Optional, List, Literal


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: Literal[False] = False
    error: str = Field(..., description="Error message")
    code: Optional[str] = Field(
        default=None,
        description="Error code for programmatic handling"
    )

    class Config:
        """Pydantic config."""
        schema_extra = {
            "example": {
                "ok": False,
                "error": "invalid request",
                "code": "VALIDATION_ERROR"
            }
        }


class AskResponse(BaseModel):
    """Response model for /api/ask/ai endpoint."""

    ok: Literal[True] = True
    response: str = Field(..., description="Aggregated model reply")

    class Config:
        """Pydantic config."""
        schema_extra = {
            "example": {
                "ok": True,
                "response": "The capital of France is Paris."
            }
        }


class AuthResponse(BaseModel):
    """Response model for auth endpoints."""

    ok: Literal[True] = True
    token: str = Field(..., description="Auth token")
    username: str = Field(..., description="Username")


class ConversationInfo(BaseModel):
    """Conversation record as exposed to its owner."""

    id: str = Field(..., description="Record ID")
    user_input: str = Field(..., description="User input text")
    ai_response: str = Field(..., description="Model reply text")
    created_at: Optional[str] = Field(
        default=None,
        description="Creation timestamp"
    )


class ConversationsListResponse(BaseModel):
    """Response model for listing conversations."""

    ok: Literal[True] = True
    conversations: List[ConversationInfo] = Field(
        default_factory=list,
        description="Conversations, newest first"
    )


class HealthResponse(BaseModel):
    ok: Literal[True] = True
    sessions: int = Field(default=0, ge=0, description="Open WebSocket sessions")


class SuccessResponse(BaseModel):
    """Generic success response."""

    ok: Literal[True] = True
    message: Optional[str] = Field(
        default=None,
        description="Optional success message"
    )
