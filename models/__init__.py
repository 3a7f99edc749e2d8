"""Data models for request/response validation and domain entities."""
from models.request import AskRequest, RegisterRequest, LoginRequest
from models.response import (
    AskResponse,
    AuthResponse,
    ConversationInfo,
    ConversationsListResponse,
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)
from models.domain import (
    AuthUser,
    ConversationRecord,
    ContentBlock,
    AIMessage,
    AIRequest,
    AIResponse,
)

__all__ = [
    # Requests
    "AskRequest",
    "RegisterRequest",
    "LoginRequest",
    # Responses
    "AskResponse",
    "AuthResponse",
    "ConversationInfo",
    "ConversationsListResponse",
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
    # Domain
    "AuthUser",
    "ConversationRecord",
    "ContentBlock",
    "AIMessage",
    "AIRequest",
    "AIResponse",
]
