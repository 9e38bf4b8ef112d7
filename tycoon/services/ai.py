"""AI content collaborator.

The engine asks for structured content with ``generate(kind, context)`` and
treats ``None`` as "use the deterministic fallback". Nothing here raises.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

import httpx

from tycoon.config import SETTINGS, Settings

logger = logging.getLogger(__name__)

PROMPTS: Dict[str, str] = {
    "market_event": (
        "Generate a random market event for 'Dev Tycoon', a game where players run a software "
        "development company.\n"
        "Return a JSON object with these fields:\n"
        '{"event_type": "snake_case_identifier", "description": "1-2 sentences", '
        '"effect": {"type": "revenue|progress|cost|bonus", "value": 0.25}, "duration_minutes": 10}\n'
        "value is a decimal fraction (0.5 = +50%, -0.3 = -30%), duration between 5 and 15.\n"
        "Return ONLY the JSON object."
    ),
}

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


class ContentGenerator(Protocol):
    async def generate(self, kind: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...


class NullGenerator:
    """Generator used when no AI backend is configured."""

    async def generate(self, kind: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return None


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of model output (tolerates code fences)."""

    match = _JSON_BLOCK.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class GeminiGenerator:
    """Gemini ``generateContent`` client over ``httpx``."""

    def __init__(self, settings: Settings = SETTINGS, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._client = client

    def _url(self) -> str:
        base = self.settings.GEMINI_API_URL.rstrip("/")
        return f"{base}/{self.settings.GEMINI_MODEL}:generateContent"

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        params = {"key": self.settings.GEMINI_API_KEY}
        if self._client is not None:
            response = await self._client.post(self._url(), params=params, json=body)
        else:
            async with httpx.AsyncClient(timeout=self.settings.AI_TIMEOUT_SECONDS) as client:
                response = await client.post(self._url(), params=params, json=body)
        response.raise_for_status()
        return response.json()

    async def generate(self, kind: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        prompt = PROMPTS.get(kind)
        if prompt is None:
            logger.warning("No prompt for content kind", extra={"kind": kind})
            return None
        if context:
            prompt = f"{prompt}\nContext: {json.dumps(context, ensure_ascii=False, default=str)}"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.9, "maxOutputTokens": 512},
        }
        try:
            data = await self._post(body)
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("AI generation failed", extra={"kind": kind, "error": repr(exc)})
            return None
        result = extract_json(text)
        if result is None:
            logger.warning("AI response was not JSON", extra={"kind": kind})
        return result


def build_generator(settings: Settings = SETTINGS) -> ContentGenerator:
    if settings.GEMINI_API_KEY:
        return GeminiGenerator(settings)
    return NullGenerator()
