from __future__ import annotations

from enum import Enum
from typing import Tuple


class Intent(str, Enum):
    PROCEED = "proceed"
    MODIFY = "modify"
    OTHER = "other"


PROCEED_KEYWORDS: Tuple[str, ...] = (
    "proceed",
    "next",
    "continue",
    "confirm",
    "yes",
    "ok",
    "sure",
    "진행",
    "다음",
    "계속",
    "확인",
    "네",
    "예",
    "좋아",
    "맞아",
)

MODIFY_KEYWORDS: Tuple[str, ...] = (
    "modify",
    "again",
    "re-enter",
    "change",
    "no",
    "수정",
    "다시",
    "재입력",
    "변경",
    "아니",
    "틀려",
)

REGENERATE_TOKENS: Tuple[str, ...] = ("regenerate", "재생성")
START_OVER_TOKENS: Tuple[str, ...] = ("start over", "from scratch", "처음부터")


def _normalize(text: str) -> str:
    return text.strip().lower()


def classify_intent(text: str) -> Intent:
    """Map a free-text reply onto proceed / modify / other.

    Matching is substring based. Proceed keywords are checked first, so a
    message that contains both kinds of keyword counts as ``PROCEED``.
    """

    normalized = _normalize(text)
    if any(keyword in normalized for keyword in PROCEED_KEYWORDS):
        return Intent.PROCEED
    if any(keyword in normalized for keyword in MODIFY_KEYWORDS):
        return Intent.MODIFY
    return Intent.OTHER


def mentions_regenerate(text: str) -> bool:
    normalized = _normalize(text)
    return any(token in normalized for token in REGENERATE_TOKENS)


def mentions_start_over(text: str) -> bool:
    normalized = _normalize(text)
    return any(token in normalized for token in START_OVER_TOKENS)
