"""API router for channels: messages and subscriptions."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fanout_service.core.dependencies.database import get_db_session
from fanout_service.core.exceptions import BadRequestException
from fanout_service.features.channels.schemas import (
    MessageResponse,
    SubscriptionRequest,
    SubscriptionResponse,
)
from fanout_service.features.channels.service import ChannelService, get_channel_service
from fanout_service.infra.logging import get_lazy_logger

router = APIRouter(prefix="/channels", tags=["channels"])

# Standard logger for INFO/WARNING/ERROR
logger = logging.getLogger(__name__)
# Lazy logger for DEBUG (zero overhead when DEBUG disabled)
lazy_logger = get_lazy_logger(__name__)

SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
ChannelServiceDep = Annotated[ChannelService, Depends(get_channel_service)]


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises:
        BadRequestException: If the value is not a timestamp with an offset.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        parsed = None
    if parsed is None or parsed.tzinfo is None:
        raise BadRequestException(
            detail=f"Invalid 'from' timestamp: {value!r} (expected RFC 3339)",
            type="invalid-timestamp",
            extra={"from": value},
        )
    return parsed.astimezone(UTC)


@router.post(
    "/{channel_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a message",
    description="Store the raw request body as a message and notify every subscriber.",
)
async def post_message(
    channel_id: str,
    request: Request,
    session: SessionDep,
    service: ChannelServiceDep,
) -> MessageResponse:
    payload = await request.body()
    message = await service.publish(session, channel_id, payload)
    await session.commit()
    return MessageResponse.model_validate(message)


@router.get(
    "/{channel_id}",
    response_model=list[MessageResponse],
    summary="Read messages",
    description="List a channel's messages oldest first, optionally only those after `from`.",
)
async def read_messages(
    channel_id: str,
    session: SessionDep,
    service: ChannelServiceDep,
    from_: Annotated[str | None, Query(alias="from", description="RFC 3339 timestamp")] = None,
) -> list[MessageResponse]:
    """List messages of a channel.

    Args:
        channel_id: Channel to read
        session: Database session
        service: Channel service
        from_: Only messages created strictly after this instant

    Returns:
        Messages ordered by creation time
    """
    since = parse_rfc3339(from_) if from_ else None
    messages = await service.list_messages(session, channel_id, since=since)
    return [MessageResponse.model_validate(message) for message in messages]


@router.post(
    "/{channel_id}/subscribe",
    response_model=SubscriptionResponse,
    summary="Subscribe a device",
)
async def subscribe(
    channel_id: str,
    body: SubscriptionRequest,
    session: SessionDep,
    service: ChannelServiceDep,
) -> SubscriptionResponse:
    subscription = await service.subscribe(session, channel_id, body.device_id)
    await session.commit()
    return SubscriptionResponse.model_validate(subscription)


@router.post(
    "/{channel_id}/unsubscribe",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unsubscribe a device",
)
async def unsubscribe(
    channel_id: str,
    body: SubscriptionRequest,
    session: SessionDep,
    service: ChannelServiceDep,
) -> None:
    await service.unsubscribe(session, channel_id, body.device_id)
    await session.commit()


@router.post(
    "/{channel_id}/subscribing",
    response_model=list[SubscriptionResponse],
    summary="Look up a device's subscription",
)
async def subscribing(
    channel_id: str,
    body: SubscriptionRequest,
    session: SessionDep,
    service: ChannelServiceDep,
) -> list[SubscriptionResponse]:
    subscriptions = await service.subscribing(session, channel_id, body.device_id)
    lazy_logger.debug(
        lambda: f"channels.subscribing: {channel_id!r} -> {len(subscriptions)} subscriptions"
    )
    return [SubscriptionResponse.model_validate(subscription) for subscription in subscriptions]
