from __future__ import annotations

import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from uuid import uuid4

import requests
from pydantic import BaseModel, ValidationError

from ..config.runtime import GatewayConfig, get_gateway_config
from ..core.errors import (
    GatewayConnectionError,
    GatewayError,
    GatewayTimeoutError,
    GatewayUnknownError,
    normalize_http_error,
)
from ..core.logging.audit import audit_event
from ..core.schemas import (
    ClassifyDeviceResponse,
    DeviceClassification,
    GeneratePlansResponse,
    Plan,
    ProductCategory,
    PurposeMechanism,
    RefinePlanResponse,
)
from . import endpoints
from .base import Gateway
from .cancellation import CancellationToken, RequestCancelled

ModelT = TypeVar("ModelT", bound=BaseModel)

_CHUNK_SIZE = 8192
_SEND_WORKERS = 4


class HttpGateway(Gateway):
    """Gateway backed by the RAiDesk HTTP service.

    Requests without a response and 5xx responses are retried with capped
    exponential backoff. Timeouts, cancellations and 4xx responses are not.
    """

    mode = "production"

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config or get_gateway_config()
        self.base_url = self.config.base_url.rstrip("/")
        self.timeout = self.config.timeout_seconds
        self.max_retries = self.config.max_retries
        self._session = session or requests.Session()
        self._sleep = sleep
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()

    def backoff_delay(self, attempt: int) -> float:
        return min(self.config.backoff_base_seconds * (2 ** attempt), self.config.backoff_cap_seconds)

    def classify_device(
        self,
        concept: str,
        context: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ClassifyDeviceResponse:
        payload: Dict[str, Any] = {"concept": concept}
        if context:
            payload["context"] = context
        body = self._request("POST", endpoints.CLASSIFY, payload, cancel=cancel)
        return self._validate(ClassifyDeviceResponse, body)

    def generate_purpose_mechanism(
        self,
        concept: str,
        category: str,
        cancel: Optional[CancellationToken] = None,
    ) -> PurposeMechanism:
        body = self._request(
            "POST",
            endpoints.PURPOSE,
            {"concept": concept, "category": category},
            cancel=cancel,
        )
        return self._validate(PurposeMechanism, body)

    def generate_plans(
        self,
        classification: DeviceClassification,
        category: ProductCategory,
        purpose_mechanism: PurposeMechanism,
        cancel: Optional[CancellationToken] = None,
    ) -> List[Plan]:
        payload = {
            "classification": classification.to_wire(),
            "category": category.to_wire(),
            "purposeMechanism": purpose_mechanism.to_wire(),
        }
        body = self._request("POST", endpoints.STANDARDS, payload, cancel=cancel)
        return self._validate(GeneratePlansResponse, body).plans

    def refine_plan(
        self,
        plan_id: str,
        modifications: str,
        context: Dict[str, Any],
        original_plan: Plan,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        payload = {
            "planId": plan_id,
            "modifications": modifications,
            "context": {**context, "original_plan": original_plan.to_wire()},
        }
        body = self._request("POST", endpoints.REFINE, payload, cancel=cancel)
        return self._validate(RefinePlanResponse, body).plan

    def check_health(self) -> bool:
        try:
            body = self._request("GET", endpoints.HEALTH, retries=0)
        except GatewayError:
            return False
        if not isinstance(body, dict):
            return False
        return str(body.get("status", "")).lower() in {"ok", "healthy", "up"}

    def get_server_info(self) -> Optional[Dict[str, Any]]:
        try:
            body = self._request("GET", endpoints.ROOT, retries=0)
        except GatewayError:
            return None
        return body if isinstance(body, dict) else None

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        cancel: Optional[CancellationToken] = None,
        retries: Optional[int] = None,
    ) -> Any:
        token = cancel or CancellationToken()
        max_retries = self.max_retries if retries is None else retries
        request_id = uuid4().hex
        try:
            return self._request_with_retries(method, endpoint, payload, token, max_retries, request_id)
        except GatewayError:
            raise
        except Exception as exc:
            audit_event(
                "gateway_request_failed",
                request_id=request_id,
                path=endpoint,
                reason="unexpected",
                error=exc.__class__.__name__,
            )
            raise GatewayUnknownError(str(exc) or None, details={"requestId": request_id}) from exc

    def _request_with_retries(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]],
        token: CancellationToken,
        max_retries: int,
        request_id: str,
    ) -> Any:
        url = endpoints.build_url(self.base_url, endpoint)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Request-ID": request_id,
        }
        started = time.monotonic()
        audit_event("gateway_request_started", request_id=request_id, method=method, path=endpoint)

        attempt = 0
        while True:
            cause: Optional[BaseException] = None
            try:
                status_code, raw = self._attempt(method, url, payload, headers, token)
            except RequestCancelled:
                self._log_failure(request_id, endpoint, started, "cancelled")
                raise GatewayTimeoutError(
                    "Request was cancelled",
                    details={"requestId": request_id},
                    cancelled=True,
                ) from None
            except requests.Timeout as exc:
                self._log_failure(request_id, endpoint, started, "timeout")
                raise GatewayTimeoutError(details={"requestId": request_id}) from exc
            except requests.RequestException as exc:
                error: GatewayError = GatewayConnectionError(details={"requestId": request_id})
                cause = exc
                reason = "no_response"
            else:
                if status_code < 400:
                    audit_event(
                        "gateway_request_completed",
                        request_id=request_id,
                        path=endpoint,
                        status=status_code,
                        attempts=attempt + 1,
                        duration_ms=_elapsed_ms(started),
                    )
                    return _parse_json(raw, request_id)
                error = normalize_http_error(status_code, _safe_json(raw))
                if status_code < 500:
                    self._log_failure(request_id, endpoint, started, f"status_{status_code}")
                    raise error
                reason = f"status_{status_code}"

            if attempt >= max_retries:
                self._log_failure(request_id, endpoint, started, reason, attempts=attempt + 1)
                raise error from cause

            delay = self.backoff_delay(attempt)
            attempt += 1
            audit_event(
                "gateway_request_retry",
                request_id=request_id,
                path=endpoint,
                attempt=attempt,
                delay_seconds=delay,
                reason=reason,
            )
            if self._pause(delay, token):
                self._log_failure(request_id, endpoint, started, "cancelled")
                raise GatewayTimeoutError(
                    "Request was cancelled",
                    details={"requestId": request_id},
                    cancelled=True,
                )

    def _attempt(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]],
        headers: Dict[str, str],
        token: CancellationToken,
    ) -> tuple[int, bytes]:
        token.raise_if_cancelled()
        response = self._send(method, url, payload, headers, token)
        unregister = token.on_cancel(response.close)
        try:
            raw = _read_body(response, token)
        finally:
            unregister()
            response.close()
        return response.status_code, raw

    def _send(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]],
        headers: Dict[str, str],
        token: CancellationToken,
    ) -> Any:
        """Issue the request on a worker thread so a cancel can stop waiting for headers.

        A response that arrives after the caller gave up is closed on arrival.
        """

        future = self._get_executor().submit(
            self._session.request,
            method,
            url,
            json=payload,
            headers=headers,
            timeout=self.timeout,
            stream=True,
        )
        settled = threading.Event()
        future.add_done_callback(lambda _: settled.set())
        unregister = token.on_cancel(settled.set)
        try:
            settled.wait()
        finally:
            unregister()
        if not future.done():
            future.add_done_callback(_close_abandoned)
            raise RequestCancelled()
        return future.result()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=_SEND_WORKERS,
                    thread_name_prefix="raidesk-gateway",
                )
            return self._executor

    def _pause(self, delay: float, token: CancellationToken) -> bool:
        if self._sleep is not None:
            self._sleep(delay)
            return token.cancelled
        return token.wait(delay)

    @staticmethod
    def _validate(model: Type[ModelT], body: Any) -> ModelT:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise GatewayUnknownError("Unexpected response from server", details=exc.errors()) from exc

    @staticmethod
    def _log_failure(
        request_id: str,
        endpoint: str,
        started: float,
        reason: str,
        attempts: int | None = None,
    ) -> None:
        fields: Dict[str, Any] = {
            "request_id": request_id,
            "path": endpoint,
            "reason": reason,
            "duration_ms": _elapsed_ms(started),
        }
        if attempts is not None:
            fields["attempts"] = attempts
        audit_event("gateway_request_failed", **fields)


def _read_body(response: Any, token: CancellationToken) -> bytes:
    chunks: List[bytes] = []
    try:
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            token.raise_if_cancelled()
            if chunk:
                chunks.append(chunk)
    except RequestCancelled:
        raise
    except Exception:
        # Closing the response from another thread breaks the read loop.
        if token.cancelled:
            raise RequestCancelled() from None
        raise
    token.raise_if_cancelled()
    return b"".join(chunks)


def _close_abandoned(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


def _safe_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _parse_json(raw: bytes, request_id: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise GatewayUnknownError("Server returned invalid JSON", details={"requestId": request_id}) from exc


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
