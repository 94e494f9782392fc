from __future__ import annotations

import logging
import time
from typing import Optional

from .aggregation import Aggregator
from .credentials import Credentials, get_credentials
from .errors import ConfigurationError
from .execution import ProviderFactory, TaskDispatcher
from .presets import PresetCatalog, get_catalog
from .prompts import render_prompts
from .types import (
    CommitteeResult,
    ExecutionResult,
    JobResultSet,
    SynthesisMethod,
    SynthesisResult,
    TaskDefinition,
)
from .validation import CommitteeRequest

logger = logging.getLogger(__name__)

FALLBACK_NOTE = (
    "Note: No LLM API key configured. Set at least one API key to get actual LLM responses."
)


def fallback_response(task: TaskDefinition, prompt: str) -> str:
    return f"[FALLBACK MODE] This is the generated prompt for {task.name}:\n\n{prompt}\n\n{FALLBACK_NOTE}"


def aggregation_failed_synthesis() -> SynthesisResult:
    return SynthesisResult(
        winner=None,
        synthesis="Aggregation failed. Please review individual agent outputs.",
        recommendations=["Review all agent outputs manually"],
        method=SynthesisMethod.ERROR_FALLBACK,
        artifact=None,
    )


class Committee:
    """Runs the full workflow: tasks, prompts, dispatch, aggregation."""

    def __init__(
        self,
        catalog: Optional[PresetCatalog] = None,
        credentials: Optional[Credentials] = None,
        provider_factory: Optional[ProviderFactory] = None,
        dispatcher: Optional[TaskDispatcher] = None,
        aggregator: Optional[Aggregator] = None,
    ) -> None:
        self.catalog = catalog or get_catalog()
        self.credentials = credentials or get_credentials()
        self.dispatcher = dispatcher or TaskDispatcher(
            credentials=self.credentials, provider_factory=provider_factory
        )
        self.aggregator = aggregator or Aggregator(credentials=self.credentials, provider_factory=provider_factory)

    async def aclose(self) -> None:
        await self.dispatcher.aclose()

    async def run(self, req: CommitteeRequest) -> CommitteeResult:
        started = time.monotonic()
        tasks = self.catalog.get_tasks(req.preset)
        prompts = render_prompts(req.preset, tasks, req.request, req.context)
        logger.info("committee start preset=%s tasks=%d context=%s", req.preset, len(tasks), bool(req.context))

        fallback = self.credentials.is_fallback_mode()
        if fallback:
            logger.warning("FALLBACK MODE: no API keys configured; returning prompts as responses")
            results = JobResultSet(
                results=[ExecutionResult.ok(t.name, fallback_response(t, p)) for t, p in zip(tasks, prompts)]
            )
        else:
            provider = req.provider or self.credentials.default_provider()
            if provider is None:
                raise ConfigurationError("No available LLM provider")
            results = await self.dispatcher.dispatch(
                tasks, prompts, provider, model=req.model, timeout_ms=req.timeout_ms
            )

        aggregator_provider = None if fallback else (req.aggregator_provider or req.provider)
        synthesis = await self._aggregate(results, req, aggregator_provider, use_judge=not fallback)

        result = CommitteeResult(
            request=req.request,
            preset=req.preset,
            tasks=list(tasks),
            prompts=list(prompts),
            results=results,
            synthesis=synthesis,
            context=req.context,
            aggregator_provider=aggregator_provider or self.credentials.default_provider(),
            aggregator_model=req.aggregator_model,
            fallback_mode=fallback,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        logger.info(
            "committee done succeeded=%d/%d method=%s",
            result.successful_agents, result.total_agents, synthesis.method.value,
        )
        return result

    async def _aggregate(
        self,
        results: JobResultSet,
        req: CommitteeRequest,
        provider: Optional[str],
        use_judge: bool,
    ) -> SynthesisResult:
        try:
            return await self.aggregator.aggregate(
                results.as_outputs(),
                req.request,
                provider=provider,
                model=req.aggregator_model,
                use_judge=use_judge,
            )
        except Exception:
            logger.exception("aggregation failed")
            return aggregation_failed_synthesis()


async def run_committee(
    req: CommitteeRequest,
    credentials: Optional[Credentials] = None,
    provider_factory: Optional[ProviderFactory] = None,
) -> CommitteeResult:
    committee = Committee(credentials=credentials, provider_factory=provider_factory)
    try:
        return await committee.run(req)
    finally:
        await committee.aclose()
