from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from .logger import get_logger

MAX_FIELD_LEN = 200


def safe_excerpt(value: str, *, max_len: int = 80) -> str:
    compact = " ".join(value.split())
    if len(compact) <= max_len:
        return compact
    return f"{compact[:max_len]}..."


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = safe_excerpt(value, max_len=MAX_FIELD_LEN)
        cleaned[key] = value
    return cleaned


def audit_event(event: str, **fields: Any) -> None:
    """Write one structured audit line; ``None`` fields are omitted."""

    timestamp = datetime.now(tz=timezone.utc).isoformat()
    payload = {"event": event, "timestamp": timestamp, **_sanitize(fields)}
    get_logger("audit").info("audit %s", payload)
