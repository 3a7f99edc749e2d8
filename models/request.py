"""Request models for API validation."""
import re
from pydantic import BaseModel, Field, validator

USERNAME_RE = re.compile(r"^[A-Za-z0-9]+$")


class AskRequest(BaseModel):
    """Request model for /api/ask/ai endpoint."""

    input: str = Field(..., description="User input text forwarded to the model")

    @validator("input")
    def input_not_blank(cls, v):
        """Reject empty or whitespace-only input before any upstream call."""
        if not v or not v.strip():
            raise ValueError("input cannot be empty")
        return v

    class Config:
        """Pydantic config."""
        schema_extra = {
            "example": {
                "input": "What is the capital of France?"
            }
        }


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    username: str = Field(..., min_length=3, max_length=32, description="Username (alphanumeric)")
    password: str = Field(..., min_length=6, max_length=128, description="User password")
    password_confirm: str = Field(..., min_length=6, max_length=128, description="Password confirmation")

    @validator("username")
    def validate_username(cls, v):
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("username must be alphanumeric")
        return v

    class Config:
        schema_extra = {
            "example": {
                "username": "user123",
                "password": "secret123",
                "password_confirm": "secret123"
            }
        }


class LoginRequest(BaseModel):
    """Request model for user login."""

    username: str = Field(..., min_length=3, max_length=32, description="Username")
    password: str = Field(..., min_length=6, max_length=128, description="User password")

    @validator("username")
    def validate_username(cls, v):
        return v.strip()
