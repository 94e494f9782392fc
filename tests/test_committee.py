"""End-to-end committee workflow with scripted providers."""

import asyncio
import json

from agent_committee.committee import Committee
from agent_committee.config import DispatchConfig
from agent_committee.credentials import Credentials
from agent_committee.errors import ProviderError, ValidationError
from agent_committee.execution import TaskDispatcher
from agent_committee.formatting import format_error, format_report, result_as_dict
from agent_committee.presets import PresetCatalog
from agent_committee.types import SynthesisMethod
from agent_committee.validation import CommitteeRequest


def run(coro):
    return asyncio.run(coro)


VERDICT = json.dumps(
    {
        "winner": "APIDesignerAgent",
        "synthesis": "Version the API and paginate everything.",
        "recommendations": ["Add /v1 prefix", "Use cursor pagination"],
    }
)


class ScriptedProvider:
    def __init__(self, provider, model, failing=()):
        self.provider = provider
        self.model = model
        self.failing = failing

    async def run(self, prompt, options=None):
        if "Committee Aggregator Agent" in prompt:
            return VERDICT
        for name in self.failing:
            if f"AGENT: {name} (" in prompt:
                raise ProviderError(f"{self.provider} API error (503): overloaded", self.provider, 503)
        return f"- answer from {self.provider}/{self.model}\n\nConsider this."

    async def best_available_model(self, force_refresh=False):
        return "scripted-best"

    async def aclose(self):
        pass


class ScriptedFactory:
    def __init__(self, failing=()):
        self.failing = failing
        self.calls = []

    def __call__(self, provider, model):
        self.calls.append((provider, model))
        return ScriptedProvider(provider, model, self.failing)


def make_committee(keys, factory):
    credentials = Credentials(keys=keys)
    dispatcher = TaskDispatcher(
        DispatchConfig(timeout_ms=2000, termination_grace_secs=0.5, select_best_model=True),
        credentials,
        factory,
    )
    return Committee(catalog=PresetCatalog(), credentials=credentials, provider_factory=factory, dispatcher=dispatcher)


def test_fallback_mode_returns_prompts_without_calls():
    committee = Committee(catalog=PresetCatalog(), credentials=Credentials(keys={}))

    result = run(committee.run(CommitteeRequest(request="Design a login page", preset="frontend")))

    assert result.fallback_mode
    assert result.total_agents == 4
    assert result.successful_agents == 4
    assert result.results[0].output.startswith("[FALLBACK MODE] This is the generated prompt for UIDesignerAgent:")
    assert "Task: Design a login page" in result.results[0].output
    assert result.synthesis.method == SynthesisMethod.HEURISTIC
    assert result.provider is None


def test_committee_dispatches_and_judges():
    factory = ScriptedFactory()
    committee = make_committee({"gemini": "gk"}, factory)

    result = run(committee.run(CommitteeRequest(request="Design a REST API", preset="backend")))

    assert not result.fallback_mode
    assert result.provider == "gemini"
    assert result.model == "scripted-best"
    assert result.total_agents == 4 and result.failed_agents == 0
    assert result.results[0].output == "- answer from gemini/scripted-best\n\nConsider this."
    assert result.synthesis.method == SynthesisMethod.JUDGED
    assert result.synthesis.winner == "APIDesignerAgent"
    assert result.aggregator_provider == "gemini"


def test_partial_failures_do_not_abort_the_job():
    factory = ScriptedFactory(failing=("DatabaseAgent",))
    committee = make_committee({"openai": "sk"}, factory)

    result = run(committee.run(CommitteeRequest(request="r", preset="backend", model="gpt-4o")))

    assert result.total_agents == 4
    assert result.failed_agents == 1
    failed = result.results[1]
    assert failed.task_name == "DatabaseAgent"
    assert failed.error_kind == "transient"
    # explicit model skips selection
    assert ("openai", None) not in factory.calls[:4]
    assert all(model == "gpt-4o" for _, model in factory.calls[:4])


def test_explicit_aggregator_provider():
    factory = ScriptedFactory()
    committee = make_committee({"openai": "sk", "anthropic": "ak"}, factory)

    req = CommitteeRequest(
        request="r", preset="fullstack", provider="openai", aggregator_provider="anthropic", aggregator_model="claude"
    )
    result = run(committee.run(req))

    assert ("anthropic", "claude") in factory.calls
    assert result.aggregator_provider == "anthropic"
    assert result.aggregator_model == "claude"


class BrokenAggregator:
    async def aggregate(self, *args, **kwargs):
        raise RuntimeError("judge exploded")


def test_unexpected_aggregation_failure_degrades():
    credentials = Credentials(keys={})
    committee = Committee(catalog=PresetCatalog(), credentials=credentials, aggregator=BrokenAggregator())

    result = run(committee.run(CommitteeRequest(request="r")))

    assert result.synthesis.method == SynthesisMethod.ERROR_FALLBACK
    assert result.synthesis.recommendations == ["Review all agent outputs manually"]
    assert result.total_agents == 7


def test_result_rendering():
    committee = Committee(catalog=PresetCatalog(), credentials=Credentials(keys={}))
    result = run(committee.run(CommitteeRequest(request="Build a CLI", preset="backend", context="prior notes")))

    data = result_as_dict(result)
    assert data["workflow"]["agentPreset"] == "backend"
    assert data["workflow"]["context"] == "prior notes"
    assert data["workflow"]["fallbackMode"] is True
    assert len(data["agents"]) == 4
    assert data["finalSynthesis"]["method"] == "heuristic"
    assert "finalCode" in data["finalSynthesis"]
    assert data["summary"]["message"].startswith("Successfully processed 4 of 4 agents.")
    json.dumps(data)

    report = format_report(result)
    assert "AGENT COMMITTEE RESULTS" in report
    assert "AGENT 1/4: APIDesignerAgent" in report
    assert "FINAL SYNTHESIS (Committee Aggregator)" in report
    assert "STRUCTURED DATA (JSON)" in report
    assert "STRUCTURED DATA (JSON)" not in format_report(result, include_json=False)


def test_format_error():
    text = format_error(ValidationError("request cannot be empty", field="request"))
    assert text.startswith("Error: request cannot be empty")
    assert "Code: INVALID_REQUEST" in text
    assert '"field": "request"' in text
