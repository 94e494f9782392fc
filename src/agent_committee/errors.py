"""Error taxonomy shared by the dispatcher, providers and front ends.

Every error carries a stable ``code`` and an HTTP-ish ``status_code`` so the
FastAPI and MCP front ends can render it without knowing the concrete type.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CommitteeError(Exception):
    """Base class for all committee errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status_code": self.status_code}
        data.update(self.details())
        return {"code": self.code, "message": self.message, "data": data}


class ValidationError(CommitteeError):
    """Bad caller input, rejected before dispatch begins."""

    code = "INVALID_REQUEST"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def details(self) -> Dict[str, Any]:
        return {"field": self.field}


class ConfigurationError(CommitteeError):
    """No usable capability provider could be resolved."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class ProviderError(CommitteeError):
    """A backend call failed (auth, malformed reply, rate limit, transport).

    ``message`` holds the upstream diagnostic; credentials are never part of it.
    """

    code = "PROVIDER_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str,
        upstream_status: Optional[int] = None,
        retry_after_secs: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.upstream_status = upstream_status
        self.retry_after_secs = retry_after_secs

    def details(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "upstream_status": self.upstream_status,
            "retry_after_secs": self.retry_after_secs,
        }


class UnitFailureError(CommitteeError):
    """An execution unit crashed or went away without reporting."""

    code = "WORKER_ERROR"
    status_code = 500

    def __init__(self, message: str, task_name: str, exit_signal: Optional[str] = None) -> None:
        super().__init__(message)
        self.task_name = task_name
        self.exit_signal = exit_signal

    def details(self) -> Dict[str, Any]:
        return {"task_name": self.task_name, "exit_signal": self.exit_signal}


class DeadlineError(CommitteeError):
    """An execution unit did not settle before its deadline."""

    code = "TIMEOUT_ERROR"
    status_code = 504

    def __init__(self, message: str, task_name: str, timeout_ms: int) -> None:
        super().__init__(message)
        self.task_name = task_name
        self.timeout_ms = timeout_ms

    def details(self) -> Dict[str, Any]:
        return {"task_name": self.task_name, "timeout_ms": self.timeout_ms}
