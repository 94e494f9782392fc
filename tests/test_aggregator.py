"""Tests for judged, heuristic and error-fallback aggregation."""

import asyncio

import httpx
import pytest

from agent_committee.aggregation import (
    HEURISTIC_RECOMMENDATIONS,
    Aggregator,
    extract_json_block,
    heuristic_synthesis,
    parse_verdict,
    pick_winner,
    render_judge_prompt,
    score_output,
)
from agent_committee.aggregation.aggregator import ERROR_FALLBACK_RECOMMENDATIONS
from agent_committee.aggregation.verdict import JUDGE_FALLBACK_RECOMMENDATIONS
from agent_committee.config import AggregatorConfig
from agent_committee.credentials import Credentials
from agent_committee.errors import ProviderError, ValidationError
from agent_committee.providers import OpenAIProvider
from agent_committee.types import SynthesisMethod


def run(coro):
    return asyncio.run(coro)


DETAILED = (
    "- Use refresh tokens\n\n"
    "Store the refresh token in an httpOnly cookie and rotate it on every use. "
    "Access tokens should stay short lived, around fifteen minutes, and the server "
    "should keep a denylist for revoked sessions. Consider binding tokens to the client "
    "fingerprint so a stolen cookie is less useful."
)

OUTPUTS = {"Alpha": DETAILED, "Beta": "Error: upstream timeout", "Gamma": "ok"}


class FakeJudge:
    def __init__(self, replies, model=None):
        self.replies = list(replies)
        self.model = model
        self.calls = 0
        self.closed = False

    async def run(self, prompt, options=None):
        self.calls += 1
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def best_available_model(self, force_refresh=False):
        return "judge-best"

    async def aclose(self):
        self.closed = True


class JudgeFactory:
    def __init__(self, replies):
        self.replies = replies
        self.judges = []

    def __call__(self, provider, model):
        judge = FakeJudge(self.replies, model)
        self.judges.append((provider, judge))
        return judge


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_aggregator(replies, keys=None, config=None):
    factory = JudgeFactory(replies)
    sleep = SleepRecorder()
    credentials = Credentials(keys=keys if keys is not None else {"openai": "sk-test"})
    aggregator = Aggregator(config or AggregatorConfig(max_retries=2, retry_delay_secs=20.0), credentials, factory, sleep)
    return aggregator, factory, sleep


def test_heuristic_end_to_end_without_judge():
    aggregator, factory, _ = make_aggregator(["unused"], keys={})

    result = run(aggregator.aggregate(OUTPUTS, "How should I handle auth tokens?"))

    assert result.method == SynthesisMethod.HEURISTIC
    assert result.winner == "Alpha"
    assert result.recommendations == HEURISTIC_RECOMMENDATIONS
    assert result.artifact is None
    assert result.synthesis.startswith("[Alpha]: - Use refresh tokens")
    assert "[Beta]: Error: upstream timeout..." in result.synthesis
    assert factory.judges == []


def test_all_errors_short_circuit():
    outputs = {"A": "Error: timeout", "B": "openai API error (401): bad key"}
    aggregator, factory, _ = make_aggregator(["unused"])

    result = run(aggregator.aggregate(outputs, "req"))

    assert result.method == SynthesisMethod.ERROR_FALLBACK
    assert result.winner is None
    assert "A: Error: timeout" in result.synthesis
    assert "B: openai API error (401): bad key" in result.synthesis
    assert result.recommendations == ERROR_FALLBACK_RECOMMENDATIONS
    assert factory.judges == []


def test_rate_limited_judge_tries_three_times_then_heuristic():
    limited = ProviderError("openai API error (429): Rate limit reached", "openai", upstream_status=429)
    aggregator, factory, sleep = make_aggregator([limited])

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    judge = factory.judges[0][1]
    assert judge.calls == 3
    assert judge.closed
    assert sleep.delays == [20.0, 40.0]
    assert result.method == SynthesisMethod.HEURISTIC
    assert result.winner == "Alpha"


def test_retry_delay_uses_backend_hint():
    hinted = ProviderError("groq API error (429): Please try again in 3s", "groq", upstream_status=429)
    header = ProviderError("rate limit", "openai", upstream_status=429, retry_after_secs=5.0)
    aggregator, _, _ = make_aggregator(["unused"])

    assert aggregator.retry_delay(hinted, 1) == 3.0
    assert aggregator.retry_delay(hinted, 2) == 6.0
    assert aggregator.retry_delay(header, 2) == 10.0
    assert aggregator.retry_delay(None, 1) == 20.0


def test_rate_limit_then_success():
    limited = ProviderError("Too Many Requests", "openai", upstream_status=429)
    reply = '{"winner": "Gamma", "synthesis": "merged", "recommendations": ["a"]}'
    aggregator, factory, sleep = make_aggregator([limited, reply])

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    assert factory.judges[0][1].calls == 2
    assert sleep.delays == [20.0]
    assert result.method == SynthesisMethod.JUDGED
    assert result.winner == "Gamma"


def test_other_judge_failure_is_not_retried():
    failure = ProviderError("openai API error (401): invalid api key", "openai", upstream_status=401)
    aggregator, factory, sleep = make_aggregator([failure])

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    assert factory.judges[0][1].calls == 1
    assert sleep.delays == []
    assert result.method == SynthesisMethod.HEURISTIC


def test_judge_verdict_embedded_in_free_text():
    reply = (
        "Here is my verdict:\n```json\n"
        '{"winner": "Gamma", "synthesis": "Use rotating refresh tokens.", '
        '"recommendations": ["Rotate tokens", "Use httpOnly cookies"], '
        '"finalCode": "function f() { return {}; }"}\n```\nThanks.'
    )
    aggregator, factory, _ = make_aggregator([reply])

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    assert result.method == SynthesisMethod.JUDGED
    assert result.winner == "Gamma"
    assert result.synthesis == "Use rotating refresh tokens."
    assert result.recommendations == ["Rotate tokens", "Use httpOnly cookies"]
    assert result.artifact == "function f() { return {}; }"
    # no model given, so the judge picked one itself
    assert factory.judges[0][1].model == "judge-best"


def test_judge_reply_without_json_becomes_narrative():
    aggregator, _, _ = make_aggregator(["Alpha has the strongest answer overall."])

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    assert result.method == SynthesisMethod.JUDGED
    assert result.winner == "Alpha"
    assert result.synthesis == "Alpha has the strongest answer overall."
    assert result.recommendations == JUDGE_FALLBACK_RECOMMENDATIONS


def test_explicit_judge_provider_and_model():
    reply = '{"winner": "Alpha", "synthesis": "s", "recommendations": []}'
    aggregator, factory, _ = make_aggregator([reply], keys={"openai": "k", "anthropic": "a"})

    run(aggregator.aggregate(OUTPUTS, "req", provider="anthropic", model="claude-3-opus"))

    provider, judge = factory.judges[0]
    assert provider == "anthropic"
    assert judge.model == "claude-3-opus"


def test_judge_provider_without_key_uses_heuristic():
    aggregator, factory, _ = make_aggregator(["unused"])

    result = run(aggregator.aggregate(OUTPUTS, "req", provider="anthropic"))

    assert result.method == SynthesisMethod.HEURISTIC
    assert factory.judges == []


def test_use_judge_false_skips_judge():
    aggregator, factory, _ = make_aggregator(["unused"])
    result = run(aggregator.aggregate(OUTPUTS, "req", use_judge=False))
    assert result.method == SynthesisMethod.HEURISTIC
    assert factory.judges == []


def test_invalid_inputs():
    aggregator, _, _ = make_aggregator(["unused"])
    with pytest.raises(ValidationError):
        run(aggregator.aggregate({}, "req"))
    with pytest.raises(ValidationError):
        run(aggregator.aggregate(OUTPUTS, "   "))


def test_heuristic_ties_go_to_first_task():
    outputs = {"First": "same text", "Second": "same text"}
    assert heuristic_synthesis(outputs).winner == "First"
    assert pick_winner({"A": 2, "B": 3, "C": 3}) == "B"


def test_heuristic_is_deterministic():
    first = heuristic_synthesis(OUTPUTS)
    second = heuristic_synthesis(dict(OUTPUTS))
    assert first.winner == second.winner
    assert first.synthesis == second.synthesis


def test_score_output_bands_and_bonuses():
    assert score_output("ok") == 0
    assert score_output("x" * 60) == 1
    assert score_output("x" * 300) == 2
    assert score_output("x" * 2500) == 1
    assert score_output("- item\n\n```code```") == 3
    # keyword points are capped
    assert score_output("implement recommend suggest should consider") == 3


def test_extract_json_block_handles_braces_in_strings():
    text = 'noise {"a": "}{", "b": {"c": 1}} trailing }'
    assert extract_json_block(text) == '{"a": "}{", "b": {"c": 1}}'
    assert extract_json_block("no json") is None
    assert parse_verdict("{not: valid}") is None
    assert parse_verdict("[1, 2]") is None


def test_judge_prompt_lists_every_output():
    prompt = render_judge_prompt({"A": "one", "B": "two"}, "the request")
    assert "Original Request: the request" in prompt
    assert "=== A ===\none" in prompt
    assert "=== B ===\ntwo" in prompt
    assert '"winner": "<agent_name>"' in prompt


def test_groq_is_never_a_judge():
    long_outputs = {name: f"UNIQUE-{name} " + "- detail line\n\n" * 300 for name in ("Alpha", "Beta", "Gamma")}
    aggregator, factory, _ = make_aggregator(["unused"], keys={"groq": "gsk"})

    result = run(aggregator.aggregate(long_outputs, "req"))
    explicit = run(aggregator.aggregate(long_outputs, "req", provider="groq", model="llama-3.3-70b-versatile"))

    assert result.method == SynthesisMethod.HEURISTIC
    assert explicit.method == SynthesisMethod.HEURISTIC
    assert "UNIQUE-Alpha" in result.synthesis
    assert factory.judges == []


def test_groq_default_with_other_keys_uses_heuristic():
    aggregator, factory, _ = make_aggregator(["unused"], keys={"openai": "sk", "groq": "gsk"})
    result = run(aggregator.aggregate(OUTPUTS, "req"))
    assert result.method == SynthesisMethod.HEURISTIC
    assert factory.judges == []


def test_failed_marker_counts_as_error_shaped():
    outputs = {"A": "Error: upstream timeout", "B": "Request failed after retries"}
    aggregator, factory, _ = make_aggregator(["unused"])

    result = run(aggregator.aggregate(outputs, "req"))

    assert result.method == SynthesisMethod.ERROR_FALLBACK
    assert result.winner is None
    assert factory.judges == []


class ExplodingSelectionJudge(FakeJudge):
    async def best_available_model(self, force_refresh=False):
        raise RuntimeError("listing exploded")


def test_judge_closed_when_model_selection_raises():
    judges = []

    def factory(provider, model):
        judge = ExplodingSelectionJudge(["unused"], model)
        judges.append(judge)
        return judge

    aggregator = Aggregator(AggregatorConfig(), Credentials(keys={"openai": "sk"}), factory, SleepRecorder())

    with pytest.raises(RuntimeError):
        run(aggregator.aggregate(OUTPUTS, "req"))
    assert judges[0].closed


def test_malformed_judge_reply_falls_back_to_heuristic():
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"data": 5})
        return httpx.Response(200, json={"choices": [{"message": "hi"}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    def factory(provider, model):
        return OpenAIProvider("sk-test", model=model, client=client)

    aggregator = Aggregator(AggregatorConfig(), Credentials(keys={"openai": "sk-test"}), factory, SleepRecorder())

    result = run(aggregator.aggregate(OUTPUTS, "req"))

    assert result.method == SynthesisMethod.HEURISTIC
    assert result.winner == "Alpha"
