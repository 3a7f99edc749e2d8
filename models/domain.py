"""Domain models for core business entities."""
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Literal
from datetime import datetime


class AuthUser(BaseModel):
    """Authenticated caller resolved from a bearer token."""

    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Username")


class ConversationRecord(BaseModel):
    """One persisted turn: the user's input and the model's reply."""

    id: str = Field(..., description="Record ID (generated)")
    user_id: Optional[str] = Field(
        default=None,
        description="Owning user; None for anonymous socket turns"
    )
    user_input: str = Field(..., description="Text sent by the user")
    ai_response: str = Field(..., description="Aggregated reply text")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")

    class Config:
        """Pydantic config."""
        schema_extra = {
            "example": {
                "id": "4b0c6a1f2d7e4e59a1c3b8f0e2d4c6a8",
                "user_id": None,
                "user_input": "hello",
                "ai_response": "hi there",
                "created_at": "2026-02-10T10:30:00Z",
                "updated_at": "2026-02-10T10:30:00Z"
            }
        }


class ContentBlock(BaseModel):
    """A typed content block, as sent to or returned by the Messages API."""

    type: str = Field(..., description="Block type, e.g. 'text' or 'image'")
    text: Optional[str] = Field(default=None, description="Text for 'text' blocks")


class AIMessage(BaseModel):
    """A role-tagged message made of content blocks."""

    role: Literal["user", "assistant"] = Field(..., description="Message role")
    content: List[ContentBlock] = Field(default_factory=list)


class AIRequest(BaseModel):
    """Single-turn completion request."""

    model: str = Field(..., description="Model identifier")
    max_tokens: int = Field(..., gt=0, description="Output token ceiling")
    messages: List[AIMessage] = Field(...)

    @classmethod
    def single_turn(cls, text: str, model: str, max_tokens: int) -> "AIRequest":
        return cls(
            model=model,
            max_tokens=max_tokens,
            messages=[AIMessage(role="user", content=[ContentBlock(type="text", text=text)])],
        )


class AIResponse(BaseModel):
    """Completion response reduced to its content blocks."""

    content: List[ContentBlock] = Field(...)

    @validator("content", pre=True)
    def normalize_blocks(cls, v):
        """Accept SDK block objects as well as plain dicts."""
        if v is None:
            raise ValueError("response has no content")
        blocks = []
        for block in v:
            if isinstance(block, (dict, ContentBlock)):
                blocks.append(block)
            else:
                blocks.append({"type": getattr(block, "type", None), "text": getattr(block, "text", None)})
        return blocks

    def text(self) -> str:
        """Concatenate the 'text' blocks in order; other block types are ignored."""
        return "".join(block.text or "" for block in self.content if block.type == "text")
