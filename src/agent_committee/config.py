from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return value if value is not None else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Logging
LOG_LEVEL = (os.getenv("COMMITTEE_LOG_LEVEL", "INFO") or "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Dispatch
TASK_TIMEOUT_MS = _env_int("COMMITTEE_TASK_TIMEOUT_MS", 120000)
# How long to wait for a terminated unit to unwind before giving up on it
TERMINATION_GRACE_SECS = _env_float("COMMITTEE_TERMINATION_GRACE_SECS", 1.0)
WORKER_TEMPERATURE = _env_float("COMMITTEE_WORKER_TEMPERATURE", 0.7)
WORKER_MAX_TOKENS = _env_int("COMMITTEE_WORKER_MAX_TOKENS", 2000)

# Aggregation
AGGREGATOR_TEMPERATURE = _env_float("COMMITTEE_AGGREGATOR_TEMPERATURE", 0.3)
AGGREGATOR_MAX_RETRIES = _env_int("COMMITTEE_AGGREGATOR_MAX_RETRIES", 2)
AGGREGATOR_RETRY_DELAY_SECS = _env_float("COMMITTEE_AGGREGATOR_RETRY_DELAY_SECS", 20.0)
EXCERPT_CHARS = _env_int("COMMITTEE_EXCERPT_CHARS", 300)

# Providers
MODEL_CACHE_TTL_SECS = _env_float("COMMITTEE_MODEL_CACHE_TTL_SECS", 3600.0)
HTTP_TIMEOUT_SECS = _env_float("COMMITTEE_HTTP_TIMEOUT_SECS", 90.0)

OPENAI_BASE_URL = (os.getenv("OPENAI_BASE_URL", "") or "").strip() or "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = (os.getenv("ANTHROPIC_BASE_URL", "") or "").strip() or "https://api.anthropic.com/v1"
GEMINI_BASE_URL = (os.getenv("GEMINI_BASE_URL", "") or "").strip() or "https://generativelanguage.googleapis.com/v1beta"
GROQ_BASE_URL = (os.getenv("GROQ_BASE_URL", "") or "").strip() or "https://api.groq.com/openai/v1"

# Groq keeps a tight context window; stay well under it
GROQ_MAX_INPUT_TOKENS = _env_int("COMMITTEE_GROQ_MAX_INPUT_TOKENS", 2000)
GROQ_MAX_OUTPUT_TOKENS = 512
GROQ_DEFAULT_OUTPUT_TOKENS = 256

# Presets
DEFAULT_PRESET = _env_str("COMMITTEE_DEFAULT_PRESET", "specialized")
PRESETS_FILE = (os.getenv("COMMITTEE_PRESETS_FILE", "") or "").strip() or None

# Front ends
SERVER_HOST = _env_str("COMMITTEE_SERVER_HOST", "127.0.0.1")
SERVER_PORT = _env_int("COMMITTEE_SERVER_PORT", 9995)


@dataclass(frozen=True)
class DispatchConfig:
    timeout_ms: int = TASK_TIMEOUT_MS
    termination_grace_secs: float = TERMINATION_GRACE_SECS
    temperature: float = WORKER_TEMPERATURE
    max_tokens: int = WORKER_MAX_TOKENS
    select_best_model: bool = _env_bool("COMMITTEE_SELECT_BEST_MODEL", True)


@dataclass(frozen=True)
class AggregatorConfig:
    temperature: float = AGGREGATOR_TEMPERATURE
    max_retries: int = AGGREGATOR_MAX_RETRIES
    retry_delay_secs: float = AGGREGATOR_RETRY_DELAY_SECS
    excerpt_chars: int = EXCERPT_CHARS
