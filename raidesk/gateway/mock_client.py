from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

from ..core.errors import GatewayNotFoundError, GatewayTimeoutError
from ..core.logging.audit import audit_event
from ..core.schemas import (
    ClassifyDeviceResponse,
    DeviceClassification,
    Plan,
    ProductCategory,
    PurposeMechanism,
)
from .base import Gateway
from .cancellation import CancellationToken
from .fixtures import MOCK_CATEGORIES, MOCK_CLASSIFICATION, MOCK_PURPOSE_MECHANISM, build_mock_plans

CLASSIFY_DELAY = 1.5
PURPOSE_DELAY = 1.2
PLANS_DELAY = 2.0
REFINE_DELAY = 1.5


class MockGateway(Gateway):
    """Gateway that serves canned fixtures without any network I/O."""

    mode = "mock"

    def __init__(
        self,
        *,
        delay_scale: float = 1.0,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.delay_scale = delay_scale
        self._sleep = sleep

    def _delay(self, seconds: float, cancel: Optional[CancellationToken]) -> None:
        """Wait out the simulated latency; a cancel ends the call like a real one."""

        scaled = seconds * self.delay_scale
        if scaled > 0:
            if self._sleep is not None:
                self._sleep(scaled)
            elif cancel is not None:
                cancel.wait(scaled)
            else:
                time.sleep(scaled)
        if cancel is not None and cancel.cancelled:
            raise GatewayTimeoutError("Request was cancelled", cancelled=True)

    def classify_device(
        self,
        concept: str,
        context: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ClassifyDeviceResponse:
        self._delay(CLASSIFY_DELAY, cancel)
        audit_event("mock_gateway_call", operation="classify_device")
        return ClassifyDeviceResponse(
            classification=MOCK_CLASSIFICATION.model_copy(deep=True),
            suggested_categories=[category.model_copy(deep=True) for category in MOCK_CATEGORIES],
        )

    def generate_purpose_mechanism(
        self,
        concept: str,
        category: str,
        cancel: Optional[CancellationToken] = None,
    ) -> PurposeMechanism:
        self._delay(PURPOSE_DELAY, cancel)
        audit_event("mock_gateway_call", operation="generate_purpose_mechanism")
        return MOCK_PURPOSE_MECHANISM.model_copy(deep=True)

    def generate_plans(
        self,
        classification: DeviceClassification,
        category: ProductCategory,
        purpose_mechanism: PurposeMechanism,
        cancel: Optional[CancellationToken] = None,
    ) -> List[Plan]:
        self._delay(PLANS_DELAY, cancel)
        audit_event("mock_gateway_call", operation="generate_plans")
        return build_mock_plans()

    def refine_plan(
        self,
        plan_id: str,
        modifications: str,
        context: Dict[str, Any],
        original_plan: Plan,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        self._delay(REFINE_DELAY, cancel)
        audit_event("mock_gateway_call", operation="refine_plan", plan_id=plan_id)
        plan = next((candidate for candidate in build_mock_plans() if candidate.id == plan_id), None)
        if plan is None:
            raise GatewayNotFoundError("Plan not found", 404)
        return plan.model_copy(
            update={"description": f"{plan.description}\n\n[Requested changes: {modifications}]"}
        )

    def check_health(self) -> bool:
        return True

    def get_server_info(self) -> Optional[Dict[str, Any]]:
        return {"name": "RAiDesk mock backend", "version": "mock", "status": "ok"}
