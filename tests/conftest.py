from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeSink:
    """Booking sink recording deliveries instead of posting them."""

    configured = True

    def __init__(self, *, fail: bool = False, reject: bool = False) -> None:
        self.records = []
        self._fail = fail
        self._reject = reject

    async def deliver(self, record):
        from integrations.booking_webhook import DeliveryResult

        if self._fail:
            raise RuntimeError("webhook down")
        if self._reject:
            return DeliveryResult(ok=False, status_code=500, reason="Internal Server Error")
        self.records.append(record)
        return DeliveryResult(ok=True, status_code=200)


class FakeTelephonySocket:
    """Stand-in for the FastAPI WebSocket Twilio connects to."""

    def __init__(self) -> None:
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.close_calls = 0

    def push(self, message: dict | str | None) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    def hang_up(self) -> None:
        self._inbox.put_nowait(None)

    async def receive_text(self) -> str:
        from fastapi import WebSocketDisconnect

        item = await self._inbox.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.close_calls += 1
        self._inbox.put_nowait(None)

    def media(self) -> list[dict]:
        return [m for m in self.sent if m["event"] == "media"]


class FakeRealtimeSocket:
    """Stand-in for the websockets client connection to OpenAI."""

    def __init__(self) -> None:
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.close_calls = 0

    def push(self, message: dict | str) -> None:
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    def server_close(self) -> None:
        self._inbox.put_nowait(None)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            item = await self._inbox.get()
            if item is None:
                return
            yield item

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.close_calls += 1
        self._inbox.put_nowait(None)

    def of_type(self, kind: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == kind]


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def settings():
    from config.settings import Settings

    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        session_settle_seconds=0.0,
        business_name="Polar Air",
        business_city="Fargo, ND",
    )


@pytest.fixture(scope="session")
def app():
    os.environ.pop("OPENAI_API_KEY", None)
    os.environ.pop("BOOKING_WEBHOOK_URL", None)
    os.environ.pop("ZAPIER_HOOK_URL", None)

    import importlib

    from config.settings import get_settings

    # Settings are cached; make sure the cleared environment is what the app sees.
    get_settings.cache_clear()
    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app):
    import api.dependencies as deps

    sink = FakeSink()
    app.dependency_overrides[deps.get_booking_sink] = lambda: sink

    with TestClient(app) as test_client:
        test_client.sink = sink
        yield test_client

    app.dependency_overrides.clear()
