"""Deterministic classification of provider failures.

Used for two things: tagging each failed task result with an error kind, and
deciding whether the judge call is worth retrying (rate limits only).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class FailureKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"
    EMPTY_RESPONSE = "empty_response"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    UNIT_FAILURE = "unit_failure"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    OTHER = "other"


_RATE_LIMIT_PATTERNS: Tuple[str, ...] = (
    "429",
    "rate limit",
    "rate_limit",
    "requests per min",
    "too many requests",
)
_BILLING_OR_QUOTA_PATTERNS: Tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "credits",
)
_ACCESS_OR_AUTH_PATTERNS: Tuple[str, ...] = (
    "401",
    "403",
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid api key",
    "invalid x-api-key",
    "authentication",
)
_MODEL_NOT_AVAILABLE_PATTERNS: Tuple[str, ...] = (
    "model not found",
    "model_not_found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "does not exist",
    "is not found for api version",
)
_TRANSIENT_PATTERNS: Tuple[str, ...] = (
    "500",
    "502",
    "503",
    "overloaded",
    "service unavailable",
    "temporarily unavailable",
    "connection",
    "timed out",
    "timeout",
)

_RETRY_HINT_RE = re.compile(
    r"(?:try again in|retry after|retry in)\s*(\d+(?:\.\d+)?)\s*(ms|s|sec|secs|seconds)?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FailureClassification:
    kind: FailureKind
    matched_pattern: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.kind == FailureKind.RATE_LIMIT


def classify_failure(message: str) -> FailureClassification:
    """Classify a provider error message; rules are checked in priority order."""
    haystack = (message or "").lower()
    if "empty response" in haystack:
        return FailureClassification(FailureKind.EMPTY_RESPONSE, "empty response")
    rules = (
        (FailureKind.RATE_LIMIT, _RATE_LIMIT_PATTERNS),
        (FailureKind.BILLING_OR_QUOTA, _BILLING_OR_QUOTA_PATTERNS),
        (FailureKind.ACCESS_OR_AUTH, _ACCESS_OR_AUTH_PATTERNS),
        (FailureKind.MODEL_NOT_AVAILABLE, _MODEL_NOT_AVAILABLE_PATTERNS),
        (FailureKind.TRANSIENT, _TRANSIENT_PATTERNS),
    )
    for kind, patterns in rules:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return FailureClassification(kind, pattern)
    return FailureClassification(FailureKind.OTHER)


def is_rate_limit(message: str) -> bool:
    return classify_failure(message).kind == FailureKind.RATE_LIMIT


def parse_retry_after(message: str) -> Optional[float]:
    """Extract a retry delay in seconds from messages like 'try again in 12.5s'."""
    match = _RETRY_HINT_RE.search(message or "")
    if not match:
        return None
    value = float(match.group(1))
    unit = (match.group(2) or "s").lower()
    if unit == "ms":
        return value / 1000.0
    return value


def _first_match(haystack: str, patterns: Tuple[str, ...]) -> Optional[str]:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
