"""Transactional task outbox.

Pipeline steps stage follow-up tasks as rows in ``task_outbox`` inside their
own transaction; ``OutboxRelay`` kicks them onto the broker afterwards.
"""

from __future__ import annotations

from .models import TaskOutbox
from .relay import (
    BrokerKicker,
    OutboxRelay,
    TaskKicker,
    start_outbox_relay,
    stop_outbox_relay,
)
from .repository import TaskOutboxRepository

__all__ = [
    "BrokerKicker",
    "OutboxRelay",
    "TaskKicker",
    "TaskOutbox",
    "TaskOutboxRepository",
    "start_outbox_relay",
    "stop_outbox_relay",
]
