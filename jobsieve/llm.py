"""Client for the local language-model backend.

Talks to an Ollama-compatible HTTP API:

  POST {host}/api/chat   {"model", "messages", "stream": false}
       → {"message": {"role": "assistant", "content": "..."}}
  GET  {host}/api/tags   → lists installed models (used as a liveness check)

Each call is a single request with no retry; the caller decides what a
failure means. Connectivity failures and bad responses raise different
exceptions so they can be told apart in the logs.
"""

from __future__ import annotations

import logging

import requests

from jobsieve.config import LLMConfig

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base class for language-model backend failures."""


class LLMConnectionError(LLMError):
    """The backend could not be reached (refused, DNS, timeout)."""


class LLMResponseError(LLMError):
    """The backend answered, but not with a usable chat response."""


class OllamaClient:
    """Minimal chat client for a local Ollama server."""

    def __init__(self, config: LLMConfig | None = None, session: requests.Session | None = None):
        self.config = config or LLMConfig()
        self.host = self.config.host.rstrip("/")
        self.session = session or requests.Session()

    def chat(self, messages: list[dict[str, str]], model: str | None = None) -> str:
        """Send a chat-style message list and return the reply text."""
        url = f"{self.host}/api/chat"
        payload = {
            "model": model or self.config.model,
            "messages": messages,
            "stream": False,
        }

        try:
            resp = self.session.post(url, json=payload, timeout=self.config.timeout_seconds)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise LLMConnectionError(f"Cannot reach language model at {self.host}: {exc}") from exc
        except requests.RequestException as exc:
            raise LLMResponseError(f"Request to {url} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise LLMResponseError(
                f"Language model returned HTTP {resp.status_code}: {resp.text[:200]}"
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise LLMResponseError("Language model response is not JSON") from exc

        message = body.get("message") if isinstance(body, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise LLMResponseError("Language model response has no message content")

        logger.debug("Received %d chars from %s", len(content), payload["model"])
        return content

    def check_status(self) -> bool:
        """Return True if the backend is up and answering."""
        try:
            resp = self.session.get(f"{self.host}/api/tags", timeout=10)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Language model backend at %s is not available: %s", self.host, exc)
            return False
        logger.info("Language model backend at %s is running", self.host)
        return True
