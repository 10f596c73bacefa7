"""Drive one assistant completion through the thread, message and run protocol.

Each call to :meth:`CompletionOrchestrator.complete` opens a fresh thread, posts
the caller's message, starts a run against the configured assistant, polls the
run until it settles and then reads the assistant's reply back from the
thread. Every downstream failure surfaces as :class:`ProcessingError`.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

from openai import AsyncOpenAI

from ..config import Settings
from ..models.schemas import BrowsingData
from .browsing_summary import ComposedMessage, compose_message

logger = logging.getLogger(__name__)

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"
NO_RESPONSE_PLACEHOLDER = "No response from assistant"
CODE_INTERPRETER_TOOL = {"type": "code_interpreter"}

ClientFactory = Callable[[], Any]
SleepFn = Callable[[float], Awaitable[None]]


class RelayError(Exception):
    """Base class for errors raised by the relay service."""


class InvalidInputError(RelayError):
    """The caller did not supply any usable text."""


class ProcessingError(RelayError):
    """A downstream step failed; the original error is chained as ``__cause__``."""

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step


class RunFailedError(ProcessingError):
    """The service reported a terminal ``failed`` status for the run."""

    def __init__(self, run_id: str, message: str) -> None:
        super().__init__(message, step="poll_run")
        self.run_id = run_id


class RunTimeoutError(ProcessingError):
    """The run did not settle before the deadline, or polling was cancelled."""

    def __init__(self, run_id: str, message: str) -> None:
        super().__init__(message, step="poll_run")
        self.run_id = run_id


@dataclass(slots=True)
class CompletionResult:
    output_text: str
    thread_id: str
    run_id: str


def openai_client_factory(settings: Settings) -> ClientFactory:
    """Return a factory building one scoped ``AsyncOpenAI`` client per invocation."""

    def _build() -> AsyncOpenAI:
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY missing; cannot reach the assistants API")
        # Exactly one POST per thread, message and run; the SDK must not retry.
        return AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            max_retries=0,
        )

    return _build


def _status_value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


def _describe_last_error(run: Any) -> str:
    err = getattr(run, "last_error", None)
    if err is None:
        return "Unknown error"
    if isinstance(err, dict):
        code, message = err.get("code"), err.get("message")
    else:
        code, message = getattr(err, "code", None), getattr(err, "message", None)
    message = message or "Unknown error"
    return f"[{code}] {message}" if code else message


def _first_text(message: Any) -> str:
    for block in getattr(message, "content", None) or []:
        text = getattr(block, "text", None)
        value = getattr(text, "value", None)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def extract_reply_text(messages: Iterable[Any], run_id: str) -> str:
    """Return the text of the newest assistant message produced by ``run_id``.

    ``messages`` must be ordered most recent first. Messages that carry a
    different ``run_id`` are skipped; a missing or empty reply yields the
    placeholder text instead of an error.
    """

    for message in messages:
        if getattr(message, "role", None) != ASSISTANT_ROLE:
            continue
        message_run_id = getattr(message, "run_id", None)
        if message_run_id and message_run_id != run_id:
            continue
        return _first_text(message) or NO_RESPONSE_PLACEHOLDER
    return NO_RESPONSE_PLACEHOLDER


class CompletionOrchestrator:
    """Runs a single, sequential completion workflow per call."""

    def __init__(
        self,
        *,
        assistant_id: Optional[str],
        client_factory: ClientFactory,
        poll_interval: float = 1.0,
        run_timeout: float = 30.0,
        inline_summary_max_chars: int = 20_000,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not math.isfinite(run_timeout) or run_timeout <= 0:
            raise ValueError("run_timeout must be a finite positive number")
        if poll_interval < 0:
            raise ValueError("poll_interval must not be negative")
        self._assistant_id = assistant_id
        self._client_factory = client_factory
        self._poll_interval = poll_interval
        self._run_timeout = run_timeout
        self._inline_summary_max_chars = inline_summary_max_chars
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionOrchestrator":
        return cls(
            assistant_id=settings.assistant_id,
            client_factory=openai_client_factory(settings),
            poll_interval=settings.run_poll_interval_seconds,
            run_timeout=settings.run_timeout_seconds,
            inline_summary_max_chars=settings.inline_summary_max_chars,
        )

    async def complete(
        self,
        user_message: Optional[str],
        *,
        browsing_data: Optional[BrowsingData] = None,
        system_context: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CompletionResult:
        """Post ``user_message`` to a new thread and return the assistant's reply."""

        if not user_message or not user_message.strip():
            raise InvalidInputError("No message provided")

        client = None
        step = "configure"
        try:
            if not self._assistant_id:
                raise RuntimeError("ASSISTANT_ID missing; no assistant configured to process runs")
            composed = compose_message(
                user_message,
                browsing_data,
                system_context,
                max_inline_chars=self._inline_summary_max_chars,
            )
            logger.info(
                "Completion requested (message chars=%d, browsing data=%s)",
                len(composed.content),
                "yes" if browsing_data is not None else "no",
            )
            client = self._client_factory()

            step = "create_thread"
            thread = await client.beta.threads.create()
            thread_id: str = thread.id
            logger.info("Created thread %s", thread_id)

            step = "post_message"
            file_id = await self._post_message(client, thread_id, composed)

            step = "start_run"
            run_id = await self._start_run(client, thread_id, with_code_interpreter=file_id is not None)

            step = "poll_run"
            await self._wait_for_run(client, thread_id, run_id, cancel_event)

            step = "list_messages"
            page = await client.beta.threads.messages.list(thread_id, order="desc")
            output_text = extract_reply_text(getattr(page, "data", None) or [], run_id)
            logger.info("Run %s on thread %s produced %d chars", run_id, thread_id, len(output_text))
            return CompletionResult(output_text=output_text, thread_id=thread_id, run_id=run_id)
        except (RunFailedError, RunTimeoutError) as exc:
            logger.error("Assistant run %s did not complete: %s", exc.run_id, exc)
            raise ProcessingError(f"Failed to process message: {exc}", step=step) from exc
        except Exception as exc:
            logger.exception("Completion failed during %s: %s", step, exc)
            raise ProcessingError(f"Failed to process message: {exc}", step=step) from exc
        finally:
            if client is not None:
                await self._close_client(client)

    async def _post_message(self, client: Any, thread_id: str, composed: ComposedMessage) -> Optional[str]:
        file_id: Optional[str] = None
        payload: dict[str, Any] = {"role": USER_ROLE, "content": composed.content}
        if composed.csv_payload is not None:
            stamp = datetime.now(timezone.utc).date().isoformat()
            uploaded = await client.files.create(
                file=(f"browsing-data-{stamp}.csv", composed.csv_payload.encode("utf-8"), "text/csv"),
                purpose="assistants",
            )
            file_id = uploaded.id
            logger.info("Uploaded browsing data as file %s", file_id)
            payload["attachments"] = [{"file_id": file_id, "tools": [CODE_INTERPRETER_TOOL]}]

        await client.beta.threads.messages.create(thread_id, **payload)
        logger.info("Message added to thread %s", thread_id)
        return file_id

    async def _start_run(self, client: Any, thread_id: str, *, with_code_interpreter: bool) -> str:
        options: dict[str, Any] = {"assistant_id": self._assistant_id}
        if with_code_interpreter:
            options["tools"] = [CODE_INTERPRETER_TOOL]
        run = await client.beta.threads.runs.create(thread_id, **options)
        logger.info("Started run %s on thread %s", run.id, thread_id)
        return run.id

    async def _wait_for_run(
        self,
        client: Any,
        thread_id: str,
        run_id: str,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            return await asyncio.wait_for(
                self._poll_run(client, thread_id, run_id, cancel_event),
                timeout=self._run_timeout,
            )
        except asyncio.TimeoutError as exc:
            # A TimeoutError raised by the status fetch itself is a transport failure.
            if loop.time() - started < self._run_timeout:
                raise
            raise RunTimeoutError(
                run_id, f"Assistant run {run_id} timed out after {self._run_timeout}s"
            ) from exc

    async def _poll_run(
        self,
        client: Any,
        thread_id: str,
        run_id: str,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        attempt = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise RunTimeoutError(run_id, f"Polling of assistant run {run_id} was cancelled")

            attempt += 1
            run = await client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
            status = _status_value(run.status)
            logger.info("Polling run %s (attempt %d): status=%s", run_id, attempt, status)

            if status == RUN_COMPLETED:
                return run
            if status == RUN_FAILED:
                raise RunFailedError(run_id, f"Assistant run {run_id} failed: {_describe_last_error(run)}")

            await self._pause(cancel_event)

    async def _pause(self, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await self._sleep(self._poll_interval)
            return
        # Wake early when the cancel signal fires mid-wait.
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass

    @staticmethod
    async def _close_client(client: Any) -> None:
        close = getattr(client, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception:  # pragma: no cover
            logger.warning("Failed to close assistants client", exc_info=True)
