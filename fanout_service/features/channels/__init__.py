"""Channels feature package: messages, subscriptions and their HTTP API."""

from .repository import ChannelRepository, MessageRepository, SubscriptionRepository
from .router import router
from .service import ChannelService, get_channel_service

__all__ = [
    "ChannelRepository",
    "ChannelService",
    "MessageRepository",
    "SubscriptionRepository",
    "get_channel_service",
    "router",
]
