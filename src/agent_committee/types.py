from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import WORKER_MAX_TOKENS, WORKER_TEMPERATURE


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TaskDefinition:
    name: str
    role: str
    guidance: str
    description: str = ""
    focus: str = ""
    approach: str = ""
    guidelines: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskDefinition":
        return cls(
            name=str(data["name"]),
            role=str(data.get("role", "")),
            guidance=str(data.get("guidance", data.get("prompt", ""))),
            description=str(data.get("description", "")),
            focus=str(data.get("focus", "")),
            approach=str(data.get("approach", "")),
            guidelines=tuple(str(g) for g in data.get("guidelines", []) or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["guidelines"] = list(self.guidelines)
        return data


@dataclass(frozen=True)
class GenerationOptions:
    temperature: float = WORKER_TEMPERATURE
    max_tokens: int = WORKER_MAX_TOKENS


@dataclass(frozen=True)
class ExecutionRequest:
    task_name: str
    prompt: str
    provider: str
    model: Optional[str] = None
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def to_message(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_message(cls, message: str) -> "ExecutionRequest":
        data = json.loads(message)
        options = GenerationOptions(**data.pop("options", {}))
        return cls(options=options, **data)


@dataclass
class ExecutionResult:
    task_name: str
    success: bool
    output: Optional[str] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def ok(cls, task_name: str, output: str) -> "ExecutionResult":
        return cls(task_name=task_name, success=True, output=output)

    @classmethod
    def failed(cls, task_name: str, error_kind: str, error: str) -> "ExecutionResult":
        return cls(task_name=task_name, success=False, error_kind=error_kind, error=error)

    def as_text(self) -> str:
        """Text handed to aggregation; failures become ``Error: <message>``."""
        if self.success:
            return self.output or ""
        return f"Error: {self.error}"

    def to_message(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_message(cls, message: str) -> "ExecutionResult":
        return cls(**json.loads(message))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class JobResultSet:
    results: List[ExecutionResult] = field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __getitem__(self, index: int) -> ExecutionResult:
        return self.results[index]

    @property
    def submitted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.submitted - self.succeeded

    def as_outputs(self) -> Dict[str, str]:
        return {r.task_name: r.as_text() for r in self.results}

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.results]


class SynthesisMethod(str, Enum):
    JUDGED = "judged"
    HEURISTIC = "heuristic"
    ERROR_FALLBACK = "error-fallback"


@dataclass
class SynthesisResult:
    winner: Optional[str]
    synthesis: str
    recommendations: List[str]
    method: SynthesisMethod
    artifact: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "synthesis": self.synthesis,
            "recommendations": list(self.recommendations),
            "finalCode": self.artifact,
            "method": self.method.value,
            "timestamp": self.timestamp,
        }


@dataclass
class ModelCacheEntry:
    candidates: List[str]
    fetched_at: float
    ttl_secs: float

    def is_fresh(self, now: Optional[float] = None) -> bool:
        current = time.monotonic() if now is None else now
        return (current - self.fetched_at) < self.ttl_secs


@dataclass
class CommitteeResult:
    request: str
    preset: str
    tasks: List[TaskDefinition]
    prompts: List[str]
    results: JobResultSet
    synthesis: SynthesisResult
    context: str = ""
    aggregator_provider: Optional[str] = None
    aggregator_model: Optional[str] = None
    fallback_mode: bool = False
    duration_ms: float = 0.0
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def provider(self) -> Optional[str]:
        return self.results.provider

    @property
    def model(self) -> Optional[str]:
        return self.results.model

    @property
    def total_agents(self) -> int:
        return self.results.submitted

    @property
    def successful_agents(self) -> int:
        return self.results.succeeded

    @property
    def failed_agents(self) -> int:
        return self.results.failed
