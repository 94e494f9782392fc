"""Sanitising of committee arguments coming from the front ends."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from . import config
from .credentials import PROVIDERS
from .errors import ValidationError
from .presets import BUILTIN_PRESETS

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


@dataclass
class CommitteeRequest:
    request: str
    context: str = ""
    preset: str = config.DEFAULT_PRESET
    provider: Optional[str] = None
    model: Optional[str] = None
    aggregator_provider: Optional[str] = None
    aggregator_model: Optional[str] = None
    timeout_ms: Optional[int] = None


def sanitize_string(value: Any) -> str:
    """Drop control characters except newline, tab and carriage return."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_CHARS_RE.sub("", value)


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    cleaned = sanitize_string(value).strip()
    if not cleaned:
        raise ValidationError(f"{field} cannot be empty", field=field)
    return cleaned


def require_choice(value: Any, allowed: Iterable[str], field: str) -> str:
    options = list(allowed)
    if value not in options:
        raise ValidationError(f"{field} must be one of: {', '.join(options)}", field=field)
    return value


def _optional_text(value: Any, field: str) -> str:
    """Sanitised text; missing or blank counts as absent."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return sanitize_string(value).strip()


def _optional_model(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def validate_committee_args(args: Any, presets: Optional[Iterable[str]] = None) -> CommitteeRequest:
    """Turn raw tool/HTTP arguments into a CommitteeRequest.

    Accepts both snake_case and the camelCase names used by MCP clients
    (``agentPreset``, ``aggregatorProvider``, ``aggregatorModel``, ``timeoutMs``).
    """
    if not isinstance(args, dict):
        raise ValidationError("Arguments must be an object")
    allowed_presets = list(presets) if presets is not None else list(BUILTIN_PRESETS)

    def pick(*names: str) -> Any:
        for name in names:
            if args.get(name) not in (None, ""):
                return args[name]
        return None

    preset = pick("preset", "agentPreset")
    provider = pick("provider")
    aggregator_provider = pick("aggregator_provider", "aggregatorProvider")
    context = pick("context")
    timeout_ms = pick("timeout_ms", "timeoutMs")

    if timeout_ms is not None:
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ValidationError("timeout_ms must be a positive integer", field="timeout_ms")

    return CommitteeRequest(
        request=require_text(args.get("request"), "request"),
        context=_optional_text(context, "context"),
        preset=require_choice(preset, allowed_presets, "preset") if preset is not None else config.DEFAULT_PRESET,
        provider=require_choice(provider, PROVIDERS, "provider") if provider is not None else None,
        model=_optional_model(args.get("model")),
        aggregator_provider=(
            require_choice(aggregator_provider, PROVIDERS, "aggregator_provider")
            if aggregator_provider is not None
            else None
        ),
        aggregator_model=_optional_model(pick("aggregator_model", "aggregatorModel")),
        timeout_ms=timeout_ms,
    )
