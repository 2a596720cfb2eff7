"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from courier.config import Settings
from courier.dispatcher import Dispatcher
from courier.models import Notification
from courier.transport import TransportRequest, TransportResponse

Outcome = TransportResponse | BaseException | Callable[[TransportRequest], Awaitable[TransportResponse]]


class FakeTransport:
    """In-memory transport that records requests and replays scripted outcomes.

    Outcomes are scripted per URL. Each call consumes the next outcome; the
    last one repeats. URLs without a script answer 200 OK.
    """

    def __init__(self) -> None:
        self.requests: list[TransportRequest] = []
        self.timeouts: list[float] = []
        self.closed = False
        self._scripts: dict[str, list[Outcome]] = {}

    def script(self, url: str, *outcomes: Outcome) -> None:
        self._scripts[url] = list(outcomes)

    def requests_to(self, url: str) -> list[TransportRequest]:
        return [r for r in self.requests if r.url == url]

    async def send(self, request: TransportRequest, timeout: float) -> TransportResponse:
        self.requests.append(request)
        self.timeouts.append(timeout)

        script = self._scripts.get(request.url)
        if not script:
            return TransportResponse(status_code=200, text="OK")

        outcome = script[0] if len(script) == 1 else script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return outcome

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays.

    Returns immediately unless created blocked, in which case every sleeper
    waits until release() is called.
    """

    def __init__(self, blocked: bool = False) -> None:
        self.delays: list[float] = []
        self._gate = asyncio.Event()
        if not blocked:
            self._gate.set()

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await self._gate.wait()

    def release(self) -> None:
        self._gate.set()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timeouts for tests."""
    return Settings(
        env="test",
        request_timeout_seconds=0.5,
        probe_timeout_seconds=0.2,
        default_retry_delay_ms=1000,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def dispatcher(
    transport: FakeTransport, sleep: RecordingSleep, test_settings: Settings
) -> Dispatcher:
    """Dispatcher wired to the fake transport and recording sleep."""
    return Dispatcher(transport=transport, settings=test_settings, sleep=sleep)


@pytest.fixture
def notifications(dispatcher: Dispatcher) -> list[Notification]:
    """Every notification the dispatcher publishes, in order."""
    received: list[Notification] = []
    dispatcher.subscribe(received.append)
    return received
