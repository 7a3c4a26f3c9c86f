"""
Shared fixtures: a controllable clock, a no-wait sleep, loguru capture,
a factory for services backed by httpx.MockTransport and a slow local
HTTP server.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest
from loguru import logger

from mindnote.services.client import BaseAPIService, ServiceConfig

BASE_URL = "https://api.test"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SleepRecorder:
    """Replacement for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeBackend:
    """Mock transport handler that records every request it receives."""

    def __init__(self, handler: Callable[[httpx.Request], Any]):
        self._handler = handler
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self._handler(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    @property
    def call_count(self) -> int:
        return len(self.requests)


def ok(data: Any = None, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "data": data})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
async def make_service(clock: FakeClock, sleeper: SleepRecorder):
    """Build a service whose transport is the given handler."""
    created: list[BaseAPIService] = []

    def factory(
        handler: Callable[[httpx.Request], Any],
        service_cls: type[BaseAPIService] = BaseAPIService,
        **config: Any,
    ) -> tuple[BaseAPIService, FakeBackend]:
        backend = FakeBackend(handler)
        settings = {"base_url": BASE_URL, "retry_delay": 0.5, **config}
        service = service_cls(
            ServiceConfig(**settings),
            transport=httpx.MockTransport(backend),
            clock=clock,
            sleep=sleeper,
        )
        created.append(service)
        return service, backend

    yield factory

    for service in created:
        await service.close()


@pytest.fixture
async def slow_server():
    """Start a local HTTP server that answers after a delay."""
    servers: list[asyncio.AbstractServer] = []
    handlers: set[asyncio.Task] = set()

    async def start(delay: float, body: bytes) -> str:
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            handlers.add(asyncio.current_task())
            try:
                await reader.readuntil(b"\r\n\r\n")
                await asyncio.sleep(delay)
                writer.write(
                    b"HTTP/1.1 200 OK\r\n"
                    b"Content-Type: application/json\r\n"
                    + f"Content-Length: {len(body)}\r\n".encode()
                    + b"Connection: close\r\n\r\n"
                    + body
                )
                await writer.drain()
            except (ConnectionError, asyncio.IncompleteReadError):
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        servers.append(server)
        port = server.sockets[0].getsockname()[1]
        return f"http://127.0.0.1:{port}"

    yield start

    for task in handlers:
        task.cancel()
    for server in servers:
        server.close()
        await server.wait_closed()
