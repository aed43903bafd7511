"""LLM client -- async wrapper around an OpenAI-compatible chat endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You answer questions about a software repository. Use only the provided "
    "context excerpts. Cite file paths when you rely on them. If the context "
    "does not contain the answer, say so plainly."
)


@runtime_checkable
class Generator(Protocol):
    """Anything that turns a prompt into text.  Failures raise ``GenerationError``."""

    async def generate(self, prompt: str) -> str:
        ...


@dataclass
class LLMClient:
    """Minimal async-friendly chat completions client using stdlib only."""

    api_key: str
    model: str = DEFAULT_MODEL
    api_base: str = DEFAULT_API_BASE
    max_tokens: int = 1024
    temperature: float = 0.2
    timeout: float = 60.0
    backoff_enabled: bool = True
    max_retries: int = 3
    base_backoff_seconds: float = 0.5
    _total_calls: int = field(default=0, init=False, repr=False)
    _retry_count: int = field(default=0, init=False, repr=False)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _call_sync(self, messages: list[dict[str, str]]) -> str:
        """Blocking request.  Meant to be run via asyncio.to_thread."""
        body = json.dumps({
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }).encode("utf-8")
        req = urllib.request.Request(
            f"{self.api_base.rstrip('/')}/chat/completions",
            data=body,
            headers=self._headers(),
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            raise GenerationError(
                f"Chat completion failed ({exc.code}): {error_body[:300]}",
                status=exc.code,
                retryable=exc.code == 429 or exc.code >= 500,
            ) from exc
        except (urllib.error.URLError, TimeoutError) as exc:
            raise GenerationError(f"Chat completion request failed: {exc}", retryable=True) from exc
        except json.JSONDecodeError as exc:
            raise GenerationError("Chat completion returned invalid JSON") from exc

        try:
            return str(data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError(f"Unexpected chat completion payload: {str(data)[:200]}") from exc

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send a chat completion request, retrying transient failures."""
        attempt = 0
        while True:
            try:
                result = await asyncio.to_thread(self._call_sync, messages)
                self._total_calls += 1
                return result
            except GenerationError as exc:
                if not self.backoff_enabled or not exc.retryable or attempt >= self.max_retries:
                    logger.error("Generation failed after %d attempt(s): %s", attempt + 1, exc)
                    raise
                self._retry_count += 1
                wait_s = self.base_backoff_seconds * (2 ** attempt) + random.uniform(0, 0.05)
                logger.warning("Generation attempt %d failed (%s); retrying in %.2fs", attempt + 1, exc, wait_s)
                await asyncio.sleep(wait_s)
                attempt += 1

    async def ask(self, prompt: str, *, system: str | None = None) -> str:
        """Convenience: single user prompt with optional system message."""
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages)

    async def generate(self, prompt: str) -> str:
        return await self.ask(prompt, system=SYSTEM_PROMPT)

    def get_stats(self) -> dict[str, int]:
        return {"total_calls": self._total_calls, "retries": self._retry_count}
