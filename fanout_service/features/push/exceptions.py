"""Error taxonomy for the push fan-out pipeline.

Errors that are plausibly transient (storage, transport, unreadable gateway
bodies) escape the task so the broker redelivers the whole step. Gateway
status errors are raised by the client and turned into dispatcher branches.
Device errors describe a single entry of a multicast result.
"""

from __future__ import annotations


class PushDeliveryError(Exception):
    """Base class for push pipeline errors."""


class StorageError(PushDeliveryError):
    """A storage read or write failed inside a pipeline step."""


class GatewayTransportError(PushDeliveryError):
    """The gateway could not be reached or did not answer in time."""


class GatewayResponseError(PushDeliveryError):
    """The gateway answered 200 with a body that is not a multicast result."""


class GatewayStatusError(PushDeliveryError):
    """The gateway answered with a non-200 status.

    Attributes:
        status_code: HTTP status returned by the gateway.
        retry_after: Parsed Retry-After hint in seconds, if one was usable.
    """

    def __init__(self, status_code: int, retry_after: float | None = None) -> None:
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"Push gateway returned HTTP {status_code}")


class GatewayServerError(GatewayStatusError):
    """5xx: the batch is resent unchanged after a backoff delay."""


class GatewayClientError(GatewayStatusError):
    """4xx or any other non-200 status: the batch is dropped."""


class DeviceError(PushDeliveryError):
    """A per-device error code inside a successful multicast response."""

    def __init__(self, device_id: str, code: str) -> None:
        self.device_id = device_id
        self.code = code
        super().__init__(f"{code} for device {device_id}")


class DeviceTransientError(DeviceError):
    """The device is temporarily unreachable; it joins the next retry batch."""


class DevicePermanentError(DeviceError):
    """The device id is dead; its subscriptions are removed."""


def device_error(device_id: str, code: str, *, transient_code: str) -> DeviceError:
    """Map a per-device error code onto the transient/permanent split."""
    if code == transient_code:
        return DeviceTransientError(device_id, code)
    return DevicePermanentError(device_id, code)


__all__ = [
    "DeviceError",
    "DevicePermanentError",
    "DeviceTransientError",
    "GatewayClientError",
    "GatewayResponseError",
    "GatewayServerError",
    "GatewayStatusError",
    "GatewayTransportError",
    "PushDeliveryError",
    "StorageError",
    "device_error",
]
