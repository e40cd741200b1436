"""Chat proxy: request/response models."""

from datetime import datetime, timezone
from typing import Any, List, Literal

from pydantic import BaseModel, Field


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ChatMessage(BaseModel):
    message: str = Field(..., min_length=1)
    sender: Literal["user", "agent"]
    timestamp: str = None
    chatId: str = Field(..., min_length=1)

    def to_webhook_payload(self) -> "WebhookPayload":
        # An empty timestamp counts as missing
        return WebhookPayload(
            message=self.message,
            sender=self.sender,
            timestamp=self.timestamp or utc_now_iso(),
            chatId=self.chatId,
        )


class WebhookPayload(BaseModel):
    message: str
    sender: Literal["user", "agent"]
    timestamp: str
    chatId: str


class FieldViolation(BaseModel):
    path: List[Any]
    message: str
    code: str


class ErrorResponse(BaseModel):
    message: str


class ValidationErrorResponse(BaseModel):
    message: str
    errors: List[FieldViolation]


class HealthResponse(BaseModel):
    status: str
    service: str
