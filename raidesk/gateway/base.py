from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.schemas import (
    ClassifyDeviceResponse,
    DeviceClassification,
    Plan,
    ProductCategory,
    PurposeMechanism,
)
from .cancellation import CancellationToken


class Gateway(ABC):
    """Backend operations used by the session orchestrator.

    Implementations raise only ``GatewayError`` subclasses.
    """

    mode: str = "production"

    @abstractmethod
    def classify_device(
        self,
        concept: str,
        context: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ClassifyDeviceResponse:
        raise NotImplementedError

    @abstractmethod
    def generate_purpose_mechanism(
        self,
        concept: str,
        category: str,
        cancel: Optional[CancellationToken] = None,
    ) -> PurposeMechanism:
        raise NotImplementedError

    @abstractmethod
    def generate_plans(
        self,
        classification: DeviceClassification,
        category: ProductCategory,
        purpose_mechanism: PurposeMechanism,
        cancel: Optional[CancellationToken] = None,
    ) -> List[Plan]:
        raise NotImplementedError

    @abstractmethod
    def refine_plan(
        self,
        plan_id: str,
        modifications: str,
        context: Dict[str, Any],
        original_plan: Plan,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        raise NotImplementedError

    @abstractmethod
    def check_health(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_server_info(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources held by the gateway."""
