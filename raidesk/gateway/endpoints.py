from __future__ import annotations

CLASSIFY = "/api/classify"
PURPOSE = "/api/purpose"
STANDARDS = "/api/standards"
REFINE = "/api/refine"
HEALTH = "/health"
ROOT = "/"


def build_url(base_url: str, endpoint: str) -> str:
    return f"{base_url.rstrip('/')}{endpoint}"
