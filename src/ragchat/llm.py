from __future__ import annotations
import json
import logging
from typing import AsyncIterator
import httpx

from .config import Settings
from .exceptions import GenerationError
from .schemas import ChatMessage

logger = logging.getLogger(__name__)


def _wire_messages(system: str, messages: list[ChatMessage]) -> list[dict]:
    return [{"role": "system", "content": system}] + [m.model_dump() for m in messages]


class LLM:
    async def stream(self, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        raise NotImplementedError
        yield  # pragma: no cover


class GroqLLM(LLM):
    """Groq's OpenAI-compatible chat completions API, streamed over SSE"""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.model = settings.model
        self.api_key = settings.groq_api_key
        self.base_url = settings.groq_base_url.rstrip("/")
        self.timeout = settings.generation_timeout
        self.transport = transport

    async def stream(self, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        if not self.api_key:
            raise GenerationError("GROQ_API_KEY is missing.")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "text/event-stream",
        }
        payload = {
            "model": self.model,
            "messages": _wire_messages(system, messages),
            "stream": True,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                async with client.stream(
                    "POST", f"{self.base_url}/chat/completions", headers=headers, json=payload
                ) as r:
                    if r.status_code != 200:
                        body = (await r.aread()).decode("utf-8", errors="replace")
                        if r.status_code == 429:
                            raise GenerationError("Groq rate limit exceeded. Please try again later.", status_code=429)
                        if r.status_code == 401:
                            raise GenerationError(
                                "Invalid Groq API key. Please check your GROQ_API_KEY in the .env file.",
                                status_code=401,
                            )
                        raise GenerationError(f"Groq API error: {r.status_code} - {body[:200]}", status_code=r.status_code)

                    done = False
                    async for line in r.aiter_lines():
                        line = line.strip()
                        if not line.startswith("data:"):
                            continue
                        data = line[5:].strip()
                        if data == "[DONE]":
                            done = True
                            break
                        fragment = self._parse_delta(data)
                        if fragment:
                            yield fragment
                    if not done:
                        raise GenerationError("Groq stream ended before [DONE]")
            except httpx.TimeoutException as e:
                raise GenerationError("Groq stream timed out") from e
            except httpx.RequestError as e:
                raise GenerationError(f"Network error during Groq stream: {e}") from e

    @staticmethod
    def _parse_delta(data: str) -> str | None:
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed stream event: {data[:80]}")
            return None
        if not isinstance(parsed, dict):
            return None
        if parsed.get("error"):
            error = parsed["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise GenerationError(f"Groq stream error: {message}")
        choices = parsed.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("delta") or {}).get("content")


class OllamaLLM(LLM):
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.model = settings.model
        self.base_url = settings.ollama_base_url.rstrip("/")
        self.timeout = settings.generation_timeout
        self.transport = transport

    async def stream(self, system: str, messages: list[ChatMessage]) -> AsyncIterator[str]:
        payload = {
            "model": self.model,
            "messages": _wire_messages(system, messages),
            "stream": True,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                async with client.stream("POST", f"{self.base_url}/api/chat", json=payload) as r:
                    if r.status_code != 200:
                        body = (await r.aread()).decode("utf-8", errors="replace")
                        raise GenerationError(f"Ollama API error: {r.status_code} - {body[:200]}", status_code=r.status_code)
                    # one JSON object per line
                    done = False
                    async for line in r.aiter_lines():
                        if not line.strip():
                            continue
                        event = json.loads(line)
                        if event.get("error"):
                            raise GenerationError(f"Ollama error: {event['error']}")
                        fragment = (event.get("message") or {}).get("content")
                        if fragment:
                            yield fragment
                        if event.get("done"):
                            done = True
                            break
                    if not done:
                        raise GenerationError("Ollama stream ended before done")
            except httpx.ConnectError as e:
                raise GenerationError(
                    f"Cannot connect to Ollama at {self.base_url}. Make sure Ollama is running with 'ollama serve' and the model '{self.model}' is pulled."
                ) from e
            except httpx.RequestError as e:
                raise GenerationError(f"Network error during Ollama stream: {e}") from e


def get_llm(settings: Settings) -> LLM:
    if settings.llm_provider.lower() == "ollama":
        return OllamaLLM(settings)
    return GroqLLM(settings)
