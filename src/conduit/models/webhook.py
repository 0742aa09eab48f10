"""Pydantic models for inbound webhook deliveries."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conduit.models.enums import HandlerStatus


class WebhookEnvelope(BaseModel):
    """Decoded webhook delivery. May be redelivered verbatim by the sender."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    timestamp: int = 0
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class SignatureContext:
    """Everything needed to verify one delivery. Built per request, never stored."""

    id: str
    timestamp: str
    signature_header: str
    raw_body: bytes
    secret: str


class HandlerResult(BaseModel):
    """Outcome of routing one event to its handler."""

    model_config = ConfigDict(extra="allow")

    status: HandlerStatus
    type: str

    @classmethod
    def ignored(cls, event_type: str) -> "HandlerResult":
        return cls(status=HandlerStatus.IGNORED, type=event_type)

    @classmethod
    def success(cls, event_type: str, **extra: Any) -> "HandlerResult":
        return cls(status=HandlerStatus.SUCCESS, type=event_type, **extra)
