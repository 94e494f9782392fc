"""API key resolution for the supported backends.

Keys are read from the environment once per process and never logged. Use
``Credentials.from_env`` with an explicit mapping to build an isolated view
(tests, embedding applications).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .errors import ConfigurationError

OPENAI = "openai"
ANTHROPIC = "anthropic"
GEMINI = "gemini"
GROQ = "groq"

PROVIDERS = (OPENAI, ANTHROPIC, GEMINI, GROQ)

ENV_VARS: Dict[str, str] = {
    OPENAI: "OPENAI_API_KEY",
    ANTHROPIC: "ANTHROPIC_API_KEY",
    GEMINI: "GEMINI_API_KEY",
    GROQ: "GROQ_API_KEY",
}

# Used when more than one backend is configured
DEFAULT_PRIORITY = (GEMINI, GROQ, ANTHROPIC, OPENAI)


@dataclass(frozen=True)
class Credentials:
    keys: Dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Credentials":
        env = os.environ if environ is None else environ
        keys: Dict[str, str] = {}
        for provider, var in ENV_VARS.items():
            value = (env.get(var) or "").strip()
            if value:
                keys[provider] = value
        return cls(keys=keys)

    def api_key(self, provider: str) -> Optional[str]:
        return self.keys.get(provider)

    def is_available(self, provider: str) -> bool:
        return provider in self.keys

    def available_providers(self) -> List[str]:
        return [p for p in PROVIDERS if p in self.keys]

    def default_provider(self) -> Optional[str]:
        available = self.available_providers()
        if not available:
            return None
        if len(available) == 1:
            return available[0]
        for provider in DEFAULT_PRIORITY:
            if provider in available:
                return provider
        return available[0]

    def is_fallback_mode(self) -> bool:
        return not self.keys

    def require_providers(self) -> List[str]:
        available = self.available_providers()
        if not available:
            names = ", ".join(ENV_VARS[p] for p in PROVIDERS)
            raise ConfigurationError(f"No LLM providers configured. Set at least one of: {names}")
        return available

    def require_key(self, provider: str) -> str:
        if provider not in ENV_VARS:
            raise ConfigurationError(f"Unknown provider: {provider}")
        key = self.keys.get(provider)
        if not key:
            raise ConfigurationError(f"No API key configured for provider '{provider}' ({ENV_VARS[provider]})")
        return key


_PROCESS_CREDENTIALS: Optional[Credentials] = None


def get_credentials() -> Credentials:
    """Process-wide credentials, resolved on first use."""
    global _PROCESS_CREDENTIALS
    if _PROCESS_CREDENTIALS is None:
        _PROCESS_CREDENTIALS = Credentials.from_env()
    return _PROCESS_CREDENTIALS


def reset_credentials() -> None:
    global _PROCESS_CREDENTIALS
    _PROCESS_CREDENTIALS = None
