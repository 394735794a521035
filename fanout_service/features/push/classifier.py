"""Per-device outcome classification for multicast results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fanout_service.features.push.exceptions import DeviceTransientError, device_error

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fanout_service.features.push.schemas import GatewayResult


@dataclass
class Classification:
    """Device ids of one batch partitioned by required follow-up.

    ``rotate_old[i]`` is replaced by ``rotate_new[i]``. Delivered devices do
    not appear anywhere.
    """

    rotate_old: list[str] = field(default_factory=list)
    rotate_new: list[str] = field(default_factory=list)
    retries: list[str] = field(default_factory=list)
    removals: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.rotate_old or self.retries or self.removals)


def classify_results(
    device_ids: Sequence[str],
    results: Sequence[GatewayResult],
    *,
    unavailable_error: str = "Unavailable",
) -> Classification:
    """Partition ``device_ids`` using the index-aligned gateway ``results``.

    A result carrying both a message id and a registration id is a rotation.
    An error equal to ``unavailable_error`` is a retry; any other error is a
    removal. Results past the end of ``device_ids`` are ignored and devices
    without a result count as delivered.
    """
    classification = Classification()

    for device_id, result in zip(device_ids, results, strict=False):
        if result.message_id and result.registration_id:
            classification.rotate_old.append(device_id)
            classification.rotate_new.append(result.registration_id)
        elif result.error:
            err = device_error(device_id, result.error, transient_code=unavailable_error)
            if isinstance(err, DeviceTransientError):
                classification.retries.append(device_id)
            else:
                classification.removals.append(device_id)

    return classification


__all__ = ["Classification", "classify_results"]
