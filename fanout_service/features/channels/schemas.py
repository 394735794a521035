"""Pydantic schemas for the channels feature."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    """A stored message; the payload is base64 encoded in JSON."""

    model_config = ConfigDict(from_attributes=True, ser_json_bytes="base64")

    id: UUID
    channel_id: str
    created_at: datetime
    payload: bytes


class SubscriptionRequest(BaseModel):
    """Body of subscribe, unsubscribe and subscribing requests."""

    device_id: str = Field(
        ...,
        min_length=1,
        max_length=4096,
        validation_alias=AliasChoices("device_id", "IID"),
        description="Registration id of the device at the push gateway",
    )


class SubscriptionResponse(BaseModel):
    """A (channel, device) subscription and its expiry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    channel_id: str
    device_id: str
    expires_at: datetime


__all__ = ["MessageResponse", "SubscriptionRequest", "SubscriptionResponse"]
