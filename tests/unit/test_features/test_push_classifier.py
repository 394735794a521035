"""Unit tests for per-device result classification."""

from __future__ import annotations

import pytest

from fanout_service.features.push.classifier import Classification, classify_results
from fanout_service.features.push.exceptions import (
    DevicePermanentError,
    DeviceTransientError,
    device_error,
)
from fanout_service.features.push.schemas import GatewayResult


def _ok(message_id: str = "m:1") -> GatewayResult:
    return GatewayResult(message_id=message_id)


@pytest.mark.unit
class TestClassifyResults:
    """Test suite for classify_results."""

    def test_all_delivered(self):
        result = classify_results(["a", "b"], [_ok(), _ok("m:2")])

        assert result.is_empty
        assert result == Classification()

    def test_mixed_outcomes(self):
        devices = ["a", "b", "c", "d"]
        results = [
            _ok(),
            GatewayResult(message_id="m:2", registration_id="b-new"),
            GatewayResult(error="Unavailable"),
            GatewayResult(error="NotRegistered"),
        ]

        result = classify_results(devices, results)

        assert result.rotate_old == ["b"]
        assert result.rotate_new == ["b-new"]
        assert result.retries == ["c"]
        assert result.removals == ["d"]
        assert not result.is_empty

    def test_every_unknown_error_is_a_removal(self):
        results = [
            GatewayResult(error="InvalidRegistration"),
            GatewayResult(error="MismatchSenderId"),
            GatewayResult(error="MessageTooBig"),
        ]

        result = classify_results(["a", "b", "c"], results)

        assert result.removals == ["a", "b", "c"]
        assert result.retries == []

    def test_registration_id_without_message_id_is_not_a_rotation(self):
        result = classify_results(["a"], [GatewayResult(registration_id="x")])

        assert result.is_empty

    def test_extra_results_are_ignored(self):
        result = classify_results(["a"], [_ok(), GatewayResult(error="NotRegistered")])

        assert result.is_empty

    def test_missing_results_count_as_delivered(self):
        result = classify_results(["a", "b"], [GatewayResult(error="Unavailable")])

        assert result.retries == ["a"]
        assert result.removals == []

    def test_custom_transient_code(self):
        results = [GatewayResult(error="TryLater"), GatewayResult(error="Unavailable")]

        result = classify_results(["a", "b"], results, unavailable_error="TryLater")

        assert result.retries == ["a"]
        assert result.removals == ["b"]


@pytest.mark.unit
def test_device_error_split():
    assert isinstance(device_error("a", "Unavailable", transient_code="Unavailable"), DeviceTransientError)
    err = device_error("a", "NotRegistered", transient_code="Unavailable")
    assert isinstance(err, DevicePermanentError)
    assert err.device_id == "a"
    assert err.code == "NotRegistered"
