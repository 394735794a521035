"""Push feature package: gateway client and the fan-out pipeline."""

from .classifier import Classification, classify_results
from .gateway import PushGatewayClient
from .pipeline import DeliveryReport, PushPipeline

__all__ = [
    "Classification",
    "DeliveryReport",
    "PushGatewayClient",
    "PushPipeline",
    "classify_results",
]
