from __future__ import annotations

from ..config.runtime import GatewayConfig, get_gateway_config
from .base import Gateway
from .http_client import HttpGateway
from .mock_client import MockGateway


def create_gateway(mock: bool | None = None, config: GatewayConfig | None = None) -> Gateway:
    """Build the gateway strategy for one session."""

    config = config or get_gateway_config()
    use_mock = config.use_mock if mock is None else mock
    if use_mock:
        return MockGateway(delay_scale=config.mock_delay_scale)
    return HttpGateway(config)
