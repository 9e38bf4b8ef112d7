import asyncio
import json
import logging

import httpx
import pytest

from tycoon.config import JsonLogFormatter
from tycoon.services.ai import GeminiGenerator, NullGenerator, extract_json
from tycoon.services.notifications import (
    EVENT_BUG_SPAWNED,
    TelegramBroadcaster,
    render_message,
    safe_publish,
    user_channel,
)

from conftest import make_settings


def test_extract_json_tolerates_code_fences():
    assert extract_json('```json\n{"event_type": "ai_hype"}\n```') == {"event_type": "ai_hype"}
    assert extract_json("no json here") is None
    assert extract_json("{broken") is None


def _gemini(handler) -> GeminiGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiGenerator(make_settings(GEMINI_API_KEY="k"), client=client)


@pytest.mark.asyncio
async def test_gemini_generator_parses_candidate_text():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["key"] == "k"
        assert request.url.path.endswith(":generateContent")
        text = json.dumps({"event_type": "remote_boom", "effect": {"type": "progress", "value": 0.1}})
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    data = await _gemini(handler).generate("market_event", {})
    assert data["event_type"] == "remote_boom"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(500, json={}), httpx.Response(200, json={"candidates": []}), httpx.Response(200, text="nope")],
)
async def test_gemini_generator_failures_return_none(response):
    assert await _gemini(lambda request: response).generate("market_event", {}) is None


@pytest.mark.asyncio
async def test_null_generator_and_unknown_kind():
    assert await NullGenerator().generate("market_event", {}) is None
    assert await _gemini(lambda request: httpx.Response(200)).generate("poem", {}) is None


def test_render_message_uses_payload():
    text = render_message(EVENT_BUG_SPAWNED, {"product": "Shop", "title": "Leak", "penalty": 25.0})
    assert "Shop" in text and "Leak" in text
    assert render_message(EVENT_BUG_SPAWNED, {"product": "Shop"}) is None
    assert render_message("unknown.event", {}) is None


def test_safe_publish_swallows_transport_errors():
    class Broken:
        def publish(self, channel, event_name, payload):
            raise ConnectionError("down")

    safe_publish(Broken(), user_channel(1), EVENT_BUG_SPAWNED, {})


class _SlowBot:
    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text):
        self.sent.append((chat_id, text))
        await asyncio.sleep(10)


@pytest.mark.asyncio
async def test_telegram_broadcaster_drops_slow_deliveries():
    bot = _SlowBot()
    broadcaster = TelegramBroadcaster(bot, timeout=0.01)

    broadcaster.publish(user_channel(77), EVENT_BUG_SPAWNED, {"product": "Shop", "title": "Leak", "penalty": 5})
    broadcaster.publish("user.not-a-chat", EVENT_BUG_SPAWNED, {"product": "Shop", "title": "Leak", "penalty": 5})
    await broadcaster.drain()

    assert [chat_id for chat_id, _ in bot.sent] == [77]


def test_json_log_formatter_collects_extras():
    record = logging.LogRecord("tycoon", logging.INFO, __file__, 1, "Job finished", None, None)
    record.job = "process-projects"
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["message"] == "Job finished"
    assert payload["extras"] == {"job": "process-projects"}
