"""Parallel committee of LLM agents with a judged or heuristic final synthesis."""

from .aggregation import Aggregator, aggregate
from .committee import Committee, run_committee
from .credentials import Credentials, get_credentials
from .errors import (
    CommitteeError,
    ConfigurationError,
    DeadlineError,
    ProviderError,
    UnitFailureError,
    ValidationError,
)
from .execution import TaskDispatcher, dispatch
from .providers import CapabilityProvider, create_provider
from .types import (
    CommitteeResult,
    ExecutionRequest,
    ExecutionResult,
    GenerationOptions,
    JobResultSet,
    SynthesisMethod,
    SynthesisResult,
    TaskDefinition,
)
from .validation import CommitteeRequest, validate_committee_args

__all__ = [
    "Aggregator",
    "CapabilityProvider",
    "Committee",
    "CommitteeError",
    "CommitteeRequest",
    "CommitteeResult",
    "ConfigurationError",
    "Credentials",
    "DeadlineError",
    "ExecutionRequest",
    "ExecutionResult",
    "GenerationOptions",
    "JobResultSet",
    "ProviderError",
    "SynthesisMethod",
    "SynthesisResult",
    "TaskDefinition",
    "TaskDispatcher",
    "UnitFailureError",
    "ValidationError",
    "aggregate",
    "create_provider",
    "dispatch",
    "get_credentials",
    "run_committee",
    "validate_committee_args",
]
