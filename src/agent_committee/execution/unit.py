"""Execution units: one provider call each, isolated behind one-shot channels."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from ..errors import CommitteeError, ConfigurationError, ProviderError, ValidationError
from ..failure_classifier import FailureKind, classify_failure
from ..types import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

# (provider id, model id or None) -> provider instance
ProviderFactory = Callable[[str, Optional[str]], Any]


class ChannelClosed(Exception):
    pass


class Channel:
    """Single-message channel. Only strings (serialized payloads) may cross it."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=1)
        self._sent = False

    def send(self, message: str) -> None:
        if not isinstance(message, str):
            raise TypeError("channel messages must be serialized strings")
        if self._sent:
            raise ChannelClosed("channel already carried its message")
        self._sent = True
        self._queue.put_nowait(message)

    async def receive(self) -> str:
        return await self._queue.get()

    def poll(self) -> Optional[str]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None


def _failure_kind(exc: CommitteeError) -> str:
    if isinstance(exc, ProviderError):
        return classify_failure(exc.message).kind.value
    if isinstance(exc, ValidationError):
        return FailureKind.VALIDATION.value
    if isinstance(exc, ConfigurationError):
        return FailureKind.CONFIGURATION.value
    return FailureKind.OTHER.value


class ExecutionUnit:
    """Owns exactly one provider invocation.

    The request arrives on ``inbox`` and the outcome leaves on ``outbox``, both
    as JSON strings. Known committee errors are reported as failed results;
    anything else escapes the task and is seen by the supervisor as a crash.
    """

    def __init__(self, task_name: str, provider_factory: ProviderFactory) -> None:
        self.task_name = task_name
        self.inbox = Channel()
        self.outbox = Channel()
        self._provider_factory = provider_factory
        self.task: Optional[asyncio.Task] = None

    def start(self, request: ExecutionRequest) -> asyncio.Task:
        self.inbox.send(request.to_message())
        self.task = asyncio.create_task(self._main(), name=f"unit:{self.task_name}")
        return self.task

    async def _main(self) -> None:
        request = ExecutionRequest.from_message(await self.inbox.receive())
        provider = None
        try:
            try:
                provider = self._provider_factory(request.provider, request.model)
                text = await provider.run(request.prompt, request.options)
                result = ExecutionResult.ok(request.task_name, text.strip())
            except CommitteeError as exc:
                result = ExecutionResult.failed(request.task_name, _failure_kind(exc), exc.message)
            self.outbox.send(result.to_message())
        finally:
            if provider is not None:
                await provider.aclose()
