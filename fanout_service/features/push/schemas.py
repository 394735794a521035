"""Pydantic schemas for the push gateway wire format."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GatewayData(BaseModel):
    """Data block delivered to the device; only the channel tag is sent."""

    channel: str


class GatewayRequest(BaseModel):
    """Multicast request body: one channel tag sent to many devices."""

    registration_ids: list[str] = Field(..., min_length=1, max_length=1000)
    data: GatewayData

    @classmethod
    def for_channel(cls, channel_id: str, device_ids: list[str]) -> GatewayRequest:
        return cls(registration_ids=device_ids, data=GatewayData(channel=channel_id))


class GatewayResult(BaseModel):
    """Outcome for one registration id, index-aligned with the request."""

    model_config = ConfigDict(extra="ignore")

    message_id: str | None = None
    registration_id: str | None = None
    error: str | None = None


class GatewayResponse(BaseModel):
    """Multicast response body of a 200 answer."""

    model_config = ConfigDict(extra="ignore")

    multicast_id: int | None = None
    success: int = 0
    failure: int = 0
    canonical_ids: int = 0
    results: list[GatewayResult] = Field(default_factory=list)
    # From the Retry-After header, not the body
    retry_after: float | None = Field(default=None, exclude=True)

    @property
    def needs_reconciliation(self) -> bool:
        """Whether any device failed or was given a canonical id."""
        return self.failure > 0 or self.canonical_ids > 0
