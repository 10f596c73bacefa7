"""Shared fakes for the assistant relay tests."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Iterable, Optional

import pytest

from relay.services.completion import CompletionOrchestrator


def make_message(role: str, text: Optional[str], *, run_id: Optional[str] = None) -> SimpleNamespace:
    """Build an object shaped like an assistants API message record."""
    content = [] if text is None else [SimpleNamespace(type="text", text=SimpleNamespace(value=text))]
    return SimpleNamespace(role=role, run_id=run_id, content=content)


class FakeAssistantsClient:
    """In-memory stand-in for ``AsyncOpenAI`` covering the thread/run endpoints.

    Every call is recorded in ``calls`` as ``(name, args, kwargs)``. Run
    statuses are served in order and the last one repeats forever. ``fail_on``
    maps a call name to the exception it should raise.
    """

    def __init__(
        self,
        *,
        statuses: Iterable[str] = ("completed",),
        messages: Optional[list[Any]] = None,
        fail_on: Optional[dict[str, Exception]] = None,
        thread_id: str = "t1",
        run_id: str = "r1",
        last_error: Any = None,
    ) -> None:
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.statuses = list(statuses)
        self.messages = list(messages or [])
        self.fail_on = dict(fail_on or {})
        self.thread_id = thread_id
        self.run_id = run_id
        self.last_error = last_error
        self.closed = False

        self.files = SimpleNamespace(create=self._create_file)
        self.beta = SimpleNamespace(
            threads=SimpleNamespace(
                create=self._create_thread,
                messages=SimpleNamespace(create=self._create_message, list=self._list_messages),
                runs=SimpleNamespace(create=self._create_run, retrieve=self._retrieve_run),
            )
        )

    def _record(self, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self.calls.append((name, args, kwargs))
        if name in self.fail_on:
            raise self.fail_on[name]

    def calls_named(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    @property
    def call_names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    async def _create_thread(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("threads.create", args, kwargs)
        return SimpleNamespace(id=self.thread_id)

    async def _create_file(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("files.create", args, kwargs)
        return SimpleNamespace(id="file-1")

    async def _create_message(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("messages.create", args, kwargs)
        return SimpleNamespace(id="msg-user")

    async def _create_run(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("runs.create", args, kwargs)
        return SimpleNamespace(id=self.run_id, thread_id=args[0] if args else None, status="queued")

    async def _retrieve_run(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("runs.retrieve", args, kwargs)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return SimpleNamespace(id=self.run_id, status=status, last_error=self.last_error)

    async def _list_messages(self, *args: Any, **kwargs: Any) -> SimpleNamespace:
        self._record("messages.list", args, kwargs)
        return SimpleNamespace(data=list(self.messages))

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that only records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def message_factory() -> Callable[..., SimpleNamespace]:
    return make_message


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeAssistantsClient]:
    return FakeAssistantsClient


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def build_orchestrator(recording_sleep: RecordingSleep) -> Callable[..., CompletionOrchestrator]:
    """Return a builder wiring a fake client into a fast orchestrator."""

    def _build(client: FakeAssistantsClient, **overrides: Any) -> CompletionOrchestrator:
        options: dict[str, Any] = {
            "assistant_id": "asst_test",
            "client_factory": lambda: client,
            "poll_interval": 1.0,
            "run_timeout": 5.0,
            "sleep": recording_sleep,
        }
        options.update(overrides)
        return CompletionOrchestrator(**options)

    return _build
