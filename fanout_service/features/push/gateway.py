"""HTTP client for the push gateway multicast endpoint."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from fanout_service.features.push.backoff import parse_retry_after
from fanout_service.features.push.exceptions import (
    GatewayClientError,
    GatewayResponseError,
    GatewayServerError,
    GatewayTransportError,
)
from fanout_service.features.push.schemas import GatewayRequest, GatewayResponse
from fanout_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from fanout_service.core.settings.push import PushSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

CONTENT_TYPE = "application/json; charset=UTF-8"


class PushGatewayClient:
    """Sends one multicast request per batch and parses the answer.

    Non-200 answers raise ``GatewayServerError`` (5xx) or
    ``GatewayClientError`` (anything else), both carrying the parsed
    ``Retry-After`` hint. Transport failures raise ``GatewayTransportError``.

    The client does not own retries; the dispatcher decides what a status
    means for the batch.
    """

    def __init__(
        self,
        settings: PushSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway client.

        Args:
            settings: Gateway URL, key and timeouts.
            transport: Optional httpx transport (``httpx.MockTransport`` in tests).
        """
        self.settings = settings
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": CONTENT_TYPE,
            "Authorization": f"key={self.settings.api_key.get_secret_value()}",
        }

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.settings.timeout_seconds,
            connect=self.settings.connect_timeout_seconds,
        )

    async def send(self, channel_id: str, device_ids: list[str]) -> GatewayResponse:
        """POST one multicast request for ``device_ids``.

        Returns:
            The parsed multicast response of a 200 answer.

        Raises:
            GatewayTransportError: Connection failure or timeout.
            GatewayServerError: 5xx status.
            GatewayClientError: Any other non-200 status.
            GatewayResponseError: 200 with an unreadable body.
        """
        request = GatewayRequest.for_channel(channel_id, device_ids)
        body = request.model_dump_json()
        start_time = time.time()

        lazy_logger.debug(
            lambda: f"gateway.send: channel={channel_id}, devices={len(device_ids)}, bytes={len(body)}"
        )

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout(), transport=self._transport
            ) as client:
                response = await client.post(
                    self.settings.gateway_url,
                    content=body.encode("utf-8"),
                    headers=self._headers(),
                )
        except httpx.TimeoutException as exc:
            logger.warning(
                "Push gateway timeout",
                extra={
                    "channel_id": channel_id,
                    "batch_size": len(device_ids),
                    "timeout_seconds": self.settings.timeout_seconds,
                    "operation": "gateway.send",
                },
            )
            msg = f"Push gateway timed out after {self.settings.timeout_seconds}s"
            raise GatewayTransportError(msg) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Push gateway request failed",
                extra={
                    "channel_id": channel_id,
                    "batch_size": len(device_ids),
                    "error": str(exc),
                    "operation": "gateway.send",
                },
            )
            msg = f"Push gateway request failed: {exc}"
            raise GatewayTransportError(msg) from exc

        response_time_ms = int((time.time() - start_time) * 1000)
        status_code = response.status_code
        retry_after = parse_retry_after(response.headers.get("Retry-After"))

        if status_code != httpx.codes.OK:
            logger.warning(
                "Push gateway returned non-200 status",
                extra={
                    "channel_id": channel_id,
                    "batch_size": len(device_ids),
                    "status_code": status_code,
                    "retry_after": retry_after,
                    "response_time_ms": response_time_ms,
                    "operation": "gateway.send",
                },
            )
            if status_code >= 500:
                raise GatewayServerError(status_code, retry_after)
            raise GatewayClientError(status_code, retry_after)

        try:
            parsed = GatewayResponse.model_validate_json(response.content)
        except ValidationError as exc:
            msg = "Push gateway returned an unreadable multicast response"
            raise GatewayResponseError(msg) from exc
        parsed.retry_after = retry_after

        logger.info(
            "Push gateway accepted batch",
            extra={
                "channel_id": channel_id,
                "batch_size": len(device_ids),
                "success": parsed.success,
                "failure": parsed.failure,
                "canonical_ids": parsed.canonical_ids,
                "response_time_ms": response_time_ms,
                "operation": "gateway.send",
            },
        )
        return parsed


__all__ = ["CONTENT_TYPE", "PushGatewayClient"]
