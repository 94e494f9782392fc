"""Fan-out of one job's tasks to execution units under a per-unit deadline."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from .. import config
from ..config import DispatchConfig
from ..credentials import Credentials, get_credentials
from ..errors import DeadlineError, UnitFailureError, ValidationError
from ..failure_classifier import FailureKind
from ..providers import create_provider
from ..types import ExecutionRequest, ExecutionResult, GenerationOptions, JobResultSet, TaskDefinition
from .unit import ExecutionUnit, ProviderFactory

logger = logging.getLogger(__name__)

SIGNAL_MESSAGE = "message"
SIGNAL_CRASH = "crash"
SIGNAL_EXIT = "exit"
SIGNAL_DEADLINE = "deadline"


class Settlement:
    """First-writer-wins outcome slot for one unit.

    The first ``settle`` call stores the result and runs ``on_release``; every
    later call is discarded.
    """

    def __init__(self, task_name: str, on_release: Optional[Callable[[], None]] = None) -> None:
        self.task_name = task_name
        self.signal: Optional[str] = None
        self._future: "asyncio.Future[ExecutionResult]" = asyncio.get_running_loop().create_future()
        self._on_release = on_release

    @property
    def settled(self) -> bool:
        return self._future.done()

    def settle(self, signal: str, result: ExecutionResult) -> bool:
        if self._future.done():
            logger.debug("late signal discarded task=%s signal=%s", self.task_name, signal)
            return False
        self.signal = signal
        self._future.set_result(result)
        release, self._on_release = self._on_release, None
        if release is not None:
            release()
        return True

    async def wait(self) -> ExecutionResult:
        return await asyncio.shield(self._future)


def default_provider_factory(credentials: Credentials) -> ProviderFactory:
    def factory(provider: str, model: Optional[str]):
        return create_provider(provider, credentials.require_key(provider), model=model)

    return factory


class TaskDispatcher:
    """Runs one execution unit per task and joins every outcome.

    Dispatch never fails fast: crashes, timeouts and provider errors all become
    that task's ExecutionResult. Only bad input or a missing provider rejects
    the job, and that happens before any unit starts.
    """

    unit_class = ExecutionUnit

    def __init__(
        self,
        dispatch_config: Optional[DispatchConfig] = None,
        credentials: Optional[Credentials] = None,
        provider_factory: Optional[ProviderFactory] = None,
    ) -> None:
        self.config = dispatch_config or DispatchConfig()
        self.credentials = credentials or get_credentials()
        self.provider_factory = provider_factory or default_provider_factory(self.credentials)
        # One long-lived instance per backend so model lists stay cached between jobs
        self._selectors: Dict[str, object] = {}

    async def aclose(self) -> None:
        selectors, self._selectors = self._selectors, {}
        for provider in selectors.values():
            await provider.aclose()

    async def select_model(self, provider: str, force_refresh: bool = False) -> str:
        selector = self._selectors.get(provider)
        if selector is None:
            selector = self.provider_factory(provider, None)
            self._selectors[provider] = selector
        return await selector.best_available_model(force_refresh=force_refresh)

    def validate(self, tasks: Sequence[TaskDefinition], prompts: Sequence[str], provider: str, timeout_ms: int) -> None:
        if not tasks:
            raise ValidationError("At least one task is required", field="tasks")
        if len(tasks) != len(prompts):
            raise ValidationError(
                f"Got {len(tasks)} tasks but {len(prompts)} prompts",
                field="prompts",
            )
        seen = set()
        for task in tasks:
            if not task.name or not task.name.strip():
                raise ValidationError("Task names must be non-empty", field="tasks")
            if task.name in seen:
                raise ValidationError(f"Duplicate task name: {task.name}", field="tasks")
            seen.add(task.name)
        for task, prompt in zip(tasks, prompts):
            if not isinstance(prompt, str) or not prompt.strip():
                raise ValidationError(f"Prompt for task {task.name} is empty", field="prompts")
        if timeout_ms <= 0:
            raise ValidationError("timeout_ms must be positive", field="timeout_ms")
        # Raises ConfigurationError for unknown providers or missing keys
        self.credentials.require_key(provider)

    async def dispatch(
        self,
        tasks: Sequence[TaskDefinition],
        prompts: Sequence[str],
        provider: str,
        model: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> JobResultSet:
        deadline_ms = self.config.timeout_ms if timeout_ms is None else timeout_ms
        self.validate(tasks, prompts, provider, deadline_ms)

        if model is None and self.config.select_best_model:
            model = await self.select_model(provider)
        options = options or GenerationOptions(
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        requests = [
            ExecutionRequest(task_name=task.name, prompt=prompt, provider=provider, model=model, options=options)
            for task, prompt in zip(tasks, prompts)
        ]

        logger.info(
            "dispatch start tasks=%d provider=%s model=%s timeout_ms=%d",
            len(requests), provider, model, deadline_ms,
        )
        started = time.monotonic()
        results: List[ExecutionResult] = await asyncio.gather(
            *(self._supervise(request, deadline_ms) for request in requests)
        )
        job = JobResultSet(results=list(results), provider=provider, model=model)
        logger.info(
            "dispatch done submitted=%d succeeded=%d failed=%d elapsed_ms=%.0f",
            job.submitted, job.succeeded, job.failed, (time.monotonic() - started) * 1000,
        )
        return job

    async def _supervise(self, request: ExecutionRequest, timeout_ms: int) -> ExecutionResult:
        loop = asyncio.get_running_loop()
        name = request.task_name
        unit = self.unit_class(name, self.provider_factory)
        handles: Dict[str, object] = {}

        def release() -> None:
            timer = handles.get("timer")
            if timer is not None:
                timer.cancel()
            task = handles.get("task")
            if task is not None and not task.done():
                task.cancel()
            reader = handles.get("reader")
            if reader is not None and not reader.done():
                reader.cancel()

        settlement = Settlement(name, on_release=release)

        def settle_message(message: str) -> None:
            try:
                result = ExecutionResult.from_message(message)
            except (ValueError, TypeError) as exc:
                err = UnitFailureError(f"Malformed unit message: {exc}", name)
                settlement.settle(SIGNAL_CRASH, ExecutionResult.failed(name, FailureKind.UNIT_FAILURE.value, err.message))
                return
            settlement.settle(SIGNAL_MESSAGE, result)

        def on_reader_done(reader: asyncio.Task) -> None:
            if reader.cancelled() or reader.exception() is not None:
                return
            settle_message(reader.result())

        def pending_message() -> Optional[str]:
            reader = handles.get("reader")
            if reader is not None and reader.done() and not reader.cancelled() and reader.exception() is None:
                return reader.result()
            return unit.outbox.poll()

        def on_unit_exit(task: asyncio.Task) -> None:
            exc = None if task.cancelled() else task.exception()
            if settlement.settled:
                if exc is not None:
                    logger.debug("unit error after settlement name=%s error=%r", name, exc)
                return
            # A posted message outranks whatever happened afterwards
            message = pending_message()
            if message is not None:
                settle_message(message)
                return
            if task.cancelled():
                err = UnitFailureError(f"Unit for {name} was cancelled before reporting", name, "cancelled")
                settlement.settle(SIGNAL_EXIT, ExecutionResult.failed(name, FailureKind.UNIT_FAILURE.value, err.message))
                return
            if exc is not None:
                err = UnitFailureError(f"Unit error: {type(exc).__name__}: {exc}", name)
                settlement.settle(SIGNAL_CRASH, ExecutionResult.failed(name, FailureKind.UNIT_FAILURE.value, err.message))
                return
            err = UnitFailureError(f"Unit for {name} exited without sending a message", name, "exit")
            settlement.settle(SIGNAL_EXIT, ExecutionResult.failed(name, FailureKind.UNIT_FAILURE.value, err.message))

        def on_deadline() -> None:
            err = DeadlineError(f"Unit timeout after {timeout_ms}ms", name, timeout_ms)
            settlement.settle(SIGNAL_DEADLINE, ExecutionResult.failed(name, FailureKind.TIMEOUT.value, err.message))

        logger.info("task started name=%s", name)
        handles["timer"] = loop.call_later(timeout_ms / 1000.0, on_deadline)
        task = unit.start(request)
        handles["task"] = task
        reader = asyncio.create_task(unit.outbox.receive(), name=f"reader:{name}")
        handles["reader"] = reader
        reader.add_done_callback(on_reader_done)
        task.add_done_callback(on_unit_exit)

        try:
            result = await settlement.wait()
        finally:
            if not settlement.settled:
                # The dispatch itself was cancelled
                err = UnitFailureError(f"Dispatch cancelled before {name} settled", name, "cancelled")
                settlement.settle(SIGNAL_EXIT, ExecutionResult.failed(name, FailureKind.UNIT_FAILURE.value, err.message))

        log = logger.info if result.success else logger.warning
        log("task settled name=%s signal=%s success=%s", name, settlement.signal, result.success)

        pending = {t for t in (task, reader) if not t.done()}
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=self.config.termination_grace_secs)
            if still_running:
                logger.warning("unit did not unwind within grace period name=%s", name)
        return result


async def dispatch(
    tasks: Sequence[TaskDefinition],
    prompts: Sequence[str],
    provider: str,
    model: Optional[str] = None,
    timeout_ms: int = config.TASK_TIMEOUT_MS,
    credentials: Optional[Credentials] = None,
    provider_factory: Optional[ProviderFactory] = None,
) -> JobResultSet:
    """One-shot convenience wrapper around ``TaskDispatcher``."""
    dispatcher = TaskDispatcher(credentials=credentials, provider_factory=provider_factory)
    try:
        return await dispatcher.dispatch(tasks, prompts, provider, model=model, timeout_ms=timeout_ms)
    finally:
        await dispatcher.aclose()
