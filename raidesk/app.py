"""RAiDesk session service.

Wires storage, the gateway strategy and one ``SessionOrchestrator`` per
session. The HTTP layer calls into ``SessionService``; actions on the same
session are serialized here, and a second concurrent action is rejected
instead of queued.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List

from .config.runtime import get_gateway_config
from .core.errors import PlanNotFoundError, SessionBusyError, SessionNotFoundError
from .core.logging.audit import audit_event
from .core.orchestrator import SessionOrchestrator
from .core.schemas import AppMode, Session
from .gateway.base import Gateway
from .gateway.factory import create_gateway
from .storage.base import SessionStorage
from .storage.factory import create_storage

GatewayFactory = Callable[[bool], Gateway]

DEFAULT_MAX_ACTIVE_SESSIONS = 128


class SessionService:
    def __init__(
        self,
        storage: SessionStorage | None = None,
        gateway_factory: GatewayFactory | None = None,
        default_mock: bool | None = None,
        max_active_sessions: int = DEFAULT_MAX_ACTIVE_SESSIONS,
    ) -> None:
        self.storage = storage or create_storage()
        self.gateway_factory: GatewayFactory = gateway_factory or (lambda mock: create_gateway(mock))
        self.default_mock = get_gateway_config().use_mock if default_mock is None else default_mock
        self.max_active_sessions = max(max_active_sessions, 1)
        # Least recently used first; idle entries are evicted past the cap.
        self._orchestrators: "OrderedDict[str, SessionOrchestrator]" = OrderedDict()
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._status_gateways: Dict[bool, Gateway] = {}

    def create_session(self, mock: bool | None = None) -> Session:
        use_mock = self.default_mock if mock is None else mock
        orchestrator = SessionOrchestrator(self.gateway_factory(use_mock), self.storage)
        self._register(orchestrator)
        audit_event("session_created", session_id=orchestrator.session.session_id, mode=orchestrator.session.mode.value)
        with self._guard(orchestrator.session.session_id):
            return orchestrator.start()

    def get_session(self, session_id: str) -> Session:
        return self._get(session_id).snapshot()

    def list_sessions(self) -> List[str]:
        return self.storage.list_sessions()

    def send_message(self, session_id: str, content: str) -> Session:
        orchestrator = self._get(session_id)
        with self._guard(session_id):
            return orchestrator.handle_message(content)

    def select_plan(self, session_id: str, plan_id: str) -> Session:
        orchestrator = self._get(session_id)
        with self._guard(session_id):
            plan = orchestrator.session.find_plan(plan_id)
            if plan is None:
                raise PlanNotFoundError(plan_id)
            return orchestrator.select_plan(plan)

    def refine_plan(self, session_id: str, plan_id: str, modifications: str) -> Session:
        orchestrator = self._get(session_id)
        with self._guard(session_id):
            return orchestrator.refine_plan(plan_id, modifications)

    def reset(self, session_id: str) -> Session:
        orchestrator = self._get(session_id)
        with self._guard(session_id):
            snapshot = orchestrator.reset()
        self._unregister(session_id)
        self._register(orchestrator)
        return snapshot

    def toggle_mock_mode(self, session_id: str) -> Session:
        """Swap the gateway strategy; the old session is discarded."""

        orchestrator = self._get(session_id)
        with self._guard(session_id):
            use_mock = orchestrator.session.mode is not AppMode.MOCK
            self.storage.delete(session_id)
            replacement = SessionOrchestrator(self.gateway_factory(use_mock), self.storage)
            snapshot = replacement.start()
        self._unregister(session_id)
        orchestrator.close()
        self._register(replacement)
        audit_event(
            "session_mode_switched",
            previous_session_id=session_id,
            session_id=replacement.session.session_id,
            mode=replacement.session.mode.value,
        )
        return snapshot

    def toggle_panel(self, session_id: str, panel: str) -> Session:
        orchestrator = self._get(session_id)
        with self._guard(session_id):
            if panel == "summary":
                return orchestrator.toggle_summary()
            if panel == "flowchart":
                return orchestrator.toggle_flowchart()
        raise ValueError(f"Unknown panel: {panel}")

    def cancel(self, session_id: str) -> bool:
        return self._get(session_id).cancel()

    def backend_status(self) -> Dict[str, Any]:
        gateway = self._status_gateway(self.default_mock)
        return {
            "mode": gateway.mode,
            "healthy": gateway.check_health(),
            "info": gateway.get_server_info(),
        }

    def close(self) -> None:
        """Release every gateway held by the service."""

        with self._registry_lock:
            orchestrators = list(self._orchestrators.values())
            gateways = list(self._status_gateways.values())
            self._orchestrators.clear()
            self._locks.clear()
            self._status_gateways.clear()
        for orchestrator in orchestrators:
            orchestrator.close()
        for gateway in gateways:
            gateway.close()

    def _status_gateway(self, mock: bool) -> Gateway:
        with self._registry_lock:
            gateway = self._status_gateways.get(mock)
            if gateway is None:
                gateway = self._status_gateways[mock] = self.gateway_factory(mock)
            return gateway

    def _get(self, session_id: str) -> SessionOrchestrator:
        with self._registry_lock:
            orchestrator = self._orchestrators.get(session_id)
            if orchestrator is not None:
                self._orchestrators.move_to_end(session_id)
                return orchestrator
        session = self.storage.load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        # A persisted loading flag means the process stopped mid-call.
        session.is_loading = False
        orchestrator = SessionOrchestrator(
            self.gateway_factory(session.mode is AppMode.MOCK),
            self.storage,
            session=session,
        )
        with self._registry_lock:
            existing = self._orchestrators.get(session_id)
            if existing is None:
                self._orchestrators[session_id] = orchestrator
                evicted = self._evict_idle(keep=session_id)
            else:
                evicted = [orchestrator]
        for stale in evicted:
            stale.close()
        return existing or orchestrator

    def _register(self, orchestrator: SessionOrchestrator) -> None:
        session_id = orchestrator.session.session_id
        with self._registry_lock:
            self._orchestrators[session_id] = orchestrator
            self._locks.setdefault(session_id, threading.Lock())
            evicted = self._evict_idle(keep=session_id)
        for stale in evicted:
            stale.close()

    def _unregister(self, session_id: str) -> None:
        with self._registry_lock:
            self._orchestrators.pop(session_id, None)
            self._locks.pop(session_id, None)

    def _evict_idle(self, keep: str) -> List[SessionOrchestrator]:
        """Drop least recently used idle sessions past the cap; caller holds the registry lock.

        Evicted sessions are already persisted and are reloaded on next use.
        """

        evicted: List[SessionOrchestrator] = []
        for session_id in list(self._orchestrators):
            if len(self._orchestrators) <= self.max_active_sessions:
                break
            if session_id == keep:
                continue
            lock = self._locks.get(session_id)
            if lock is not None and lock.locked():
                continue
            evicted.append(self._orchestrators.pop(session_id))
            self._locks.pop(session_id, None)
        return evicted

    @contextmanager
    def _guard(self, session_id: str) -> Iterator[None]:
        with self._registry_lock:
            lock = self._locks.setdefault(session_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise SessionBusyError(f"Session {session_id} is busy")
        try:
            yield
        finally:
            lock.release()
