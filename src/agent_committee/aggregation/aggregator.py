"""Reduction of a job's outputs into a single synthesis."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from ..config import AggregatorConfig, WORKER_MAX_TOKENS
from ..credentials import ANTHROPIC, GEMINI, OPENAI, Credentials, get_credentials
from ..errors import CommitteeError, ProviderError, ValidationError
from ..execution.dispatcher import default_provider_factory
from ..execution.unit import ProviderFactory
from ..failure_classifier import is_rate_limit, parse_retry_after
from ..types import GenerationOptions, SynthesisMethod, SynthesisResult
from .heuristic import heuristic_synthesis
from .verdict import (
    JUDGE_FALLBACK_RECOMMENDATIONS,
    coerce_optional_text,
    coerce_recommendations,
    parse_verdict,
    render_judge_prompt,
)

logger = logging.getLogger(__name__)

# Groq's input budget would strip the agent outputs from the judge prompt
JUDGE_PROVIDERS = (OPENAI, ANTHROPIC, GEMINI)

ERROR_FALLBACK_RECOMMENDATIONS = ["Check API key configuration and quotas", "Verify network connectivity"]


def is_error_output(text: str) -> bool:
    lower = text.lower()
    return text.startswith("Error:") or "api error" in lower or "failed" in lower


def error_fallback_synthesis(outputs: Mapping[str, str]) -> SynthesisResult:
    details = "\n".join(f"{name}: {text}" for name, text in outputs.items())
    return SynthesisResult(
        winner=None,
        synthesis=(
            "All agents failed to process the request. Error details:\n\n"
            f"{details}\n\nPlease check your API keys, quotas, and network connectivity."
        ),
        recommendations=list(ERROR_FALLBACK_RECOMMENDATIONS),
        method=SynthesisMethod.ERROR_FALLBACK,
        artifact=None,
    )


class Aggregator:
    """Picks a winner and writes a synthesis for one job.

    Order of preference: error summary when nothing succeeded, then a judge
    model (retried on rate limits only), then the local heuristic.
    """

    def __init__(
        self,
        aggregator_config: Optional[AggregatorConfig] = None,
        credentials: Optional[Credentials] = None,
        provider_factory: Optional[ProviderFactory] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = aggregator_config or AggregatorConfig()
        self.credentials = credentials or get_credentials()
        self.provider_factory = provider_factory or default_provider_factory(self.credentials)
        self._sleep = sleep

    async def aggregate(
        self,
        outputs: Mapping[str, str],
        original_request: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        use_judge: bool = True,
    ) -> SynthesisResult:
        if not outputs:
            raise ValidationError("No agent outputs provided for aggregation", field="outputs")
        if not isinstance(original_request, str) or not original_request.strip():
            raise ValidationError("Original request is required and must be a non-empty string", field="request")

        logger.info("aggregation start outputs=%d", len(outputs))
        if all(is_error_output(text) for text in outputs.values()):
            logger.warning("all agents failed; returning error summary")
            return error_fallback_synthesis(outputs)

        judge = await self._create_judge(provider, model) if use_judge else None
        if judge is None:
            logger.info("no judge available; using heuristic scoring")
            return heuristic_synthesis(outputs, self.config.excerpt_chars)

        try:
            result = await self._judge(judge, outputs, original_request)
        finally:
            await judge.aclose()
        if result is not None:
            return result

        logger.warning("falling back to heuristic scoring")
        return heuristic_synthesis(outputs, self.config.excerpt_chars)

    async def _create_judge(self, provider: Optional[str], model: Optional[str]):
        target = provider or self.credentials.default_provider()
        if not target or not self.credentials.api_key(target):
            return None
        if target not in JUDGE_PROVIDERS:
            logger.info("provider %s cannot judge; using heuristic scoring", target)
            return None
        try:
            judge = self.provider_factory(target, model)
        except CommitteeError as exc:
            logger.warning("cannot create judge provider=%s error=%s", target, exc.message)
            return None
        if not model:
            try:
                judge.model = await judge.best_available_model()
            except Exception:
                await judge.aclose()
                raise
            logger.info("judge model selected provider=%s model=%s", target, judge.model)
        return judge

    def retry_delay(self, error: Optional[CommitteeError], attempt: int) -> float:
        base = None
        if isinstance(error, ProviderError) and error.retry_after_secs is not None:
            base = error.retry_after_secs
        if base is None and error is not None:
            base = parse_retry_after(error.message)
        if base is None:
            base = self.config.retry_delay_secs
        return base * attempt

    async def _judge(self, judge, outputs: Mapping[str, str], original_request: str) -> Optional[SynthesisResult]:
        prompt = render_judge_prompt(outputs, original_request)
        options = GenerationOptions(temperature=self.config.temperature, max_tokens=WORKER_MAX_TOKENS)
        attempts = self.config.max_retries + 1
        last_error: Optional[CommitteeError] = None

        for attempt in range(attempts):
            if attempt > 0:
                delay = self.retry_delay(last_error, attempt)
                logger.info("judge retry in %.1fs (attempt %d/%d)", delay, attempt + 1, attempts)
                await self._sleep(delay)
            try:
                reply = await judge.run(prompt, options)
            except CommitteeError as exc:
                last_error = exc
                rate_limited = is_rate_limit(exc.message) or getattr(exc, "upstream_status", None) == 429
                if rate_limited and attempt < attempts - 1:
                    continue
                if rate_limited:
                    logger.error("judge failed after %d attempts: %s", attempts, exc.message)
                else:
                    logger.error("judge failed: %s", exc.message)
                return None
            return self._verdict_from_reply(reply, outputs)
        return None

    def _verdict_from_reply(self, reply: str, outputs: Mapping[str, str]) -> SynthesisResult:
        verdict = parse_verdict(reply)
        if verdict is None:
            logger.info("judge reply had no JSON verdict; using it as the synthesis")
            return SynthesisResult(
                winner=next(iter(outputs)),
                synthesis=reply,
                recommendations=list(JUDGE_FALLBACK_RECOMMENDATIONS),
                method=SynthesisMethod.JUDGED,
                artifact=None,
            )
        winner = verdict.get("winner")
        synthesis = verdict.get("synthesis")
        return SynthesisResult(
            winner=str(winner) if winner else None,
            synthesis=synthesis if isinstance(synthesis, str) and synthesis.strip() else reply,
            recommendations=coerce_recommendations(verdict.get("recommendations")),
            method=SynthesisMethod.JUDGED,
            artifact=coerce_optional_text(verdict.get("finalCode")),
        )


async def aggregate(
    outputs: Mapping[str, str],
    original_request: str,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    credentials: Optional[Credentials] = None,
) -> SynthesisResult:
    return await Aggregator(credentials=credentials).aggregate(outputs, original_request, provider, model)
