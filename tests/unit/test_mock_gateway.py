import threading
import time

import pytest

from raidesk.config.runtime import GatewayConfig
from raidesk.core.errors import GatewayNotFoundError, GatewayTimeoutError
from raidesk.core.schemas import PlanTier
from raidesk.gateway.cancellation import CancellationToken
from raidesk.gateway.factory import create_gateway
from raidesk.gateway.http_client import HttpGateway
from raidesk.gateway.mock_client import MockGateway


def _gateway():
    delays = []
    return MockGateway(sleep=delays.append), delays


def test_classify_device_returns_fixture_after_delay():
    gateway, delays = _gateway()

    result = gateway.classify_device("AI software that finds lung nodules on CT")

    assert result.classification.is_medical_device is True
    assert result.classification.risk_class == "II"
    assert result.classification.confidence == pytest.approx(0.92)
    assert len(result.suggested_categories) == 2
    assert delays == [1.5]


def test_generate_plans_returns_one_plan_per_tier():
    gateway, delays = _gateway()
    result = gateway.classify_device("concept")
    purpose = gateway.generate_purpose_mechanism("concept", result.suggested_categories[0].name)

    plans = gateway.generate_plans(result.classification, result.suggested_categories[0], purpose)

    assert [plan.tier for plan in plans] == [
        PlanTier.FASTEST,
        PlanTier.NORMAL,
        PlanTier.CONSERVATIVE,
        PlanTier.INNOVATIVE,
    ]
    assert delays == [1.5, 1.2, 2.0]


def test_results_are_independent_copies():
    gateway, _ = _gateway()
    first = gateway.classify_device("concept")
    first.suggested_categories.clear()

    second = gateway.classify_device("concept")

    assert len(second.suggested_categories) == 2


def test_refine_plan_appends_requested_changes():
    gateway, _ = _gateway()
    original = gateway.generate_plans(None, None, None)[1]

    refined = gateway.refine_plan("plan-normal", "Shorten the clinical phase", {}, original)

    assert refined.id == "plan-normal"
    assert refined.description.endswith("[Requested changes: Shorten the clinical phase]")


def test_refine_unknown_plan_raises_not_found():
    gateway, _ = _gateway()
    original = gateway.generate_plans(None, None, None)[0]

    with pytest.raises(GatewayNotFoundError) as excinfo:
        gateway.refine_plan("plan-missing", "anything", {}, original)

    assert excinfo.value.status_code == 404


def test_delay_scale_zero_skips_sleeping():
    delays = []
    gateway = MockGateway(delay_scale=0.0, sleep=delays.append)

    gateway.classify_device("concept")

    assert delays == []


def test_health_and_info():
    gateway, _ = _gateway()
    assert gateway.mode == "mock"
    assert gateway.check_health() is True
    assert gateway.get_server_info()["status"] == "ok"


def test_create_gateway_selects_strategy():
    config = GatewayConfig(
        base_url="http://backend.test",
        timeout_seconds=1.0,
        max_retries=0,
        backoff_base_seconds=1.0,
        backoff_cap_seconds=5.0,
        use_mock=True,
        mock_delay_scale=0.25,
    )

    default = create_gateway(config=config)
    forced = create_gateway(mock=False, config=config)

    assert isinstance(default, MockGateway)
    assert default.delay_scale == 0.25
    assert isinstance(forced, HttpGateway)
    assert forced.mode == "production"
    assert forced.base_url == "http://backend.test"


def test_cancel_during_simulated_latency_aborts_the_call():
    gateway = MockGateway(delay_scale=1.0)
    token = CancellationToken()
    timer = threading.Timer(0.1, token.cancel)
    started = time.monotonic()
    timer.start()
    try:
        with pytest.raises(GatewayTimeoutError) as excinfo:
            gateway.generate_plans(None, None, None, cancel=token)
    finally:
        timer.cancel()

    assert excinfo.value.cancelled is True
    assert time.monotonic() - started < 1.5


def test_cancel_is_checked_after_injected_sleep():
    token = CancellationToken()
    gateway = MockGateway(sleep=lambda delay: token.cancel())

    with pytest.raises(GatewayTimeoutError):
        gateway.classify_device("concept", cancel=token)


def test_close_is_a_noop():
    gateway, _ = _gateway()
    gateway.close()
    assert gateway.check_health() is True
