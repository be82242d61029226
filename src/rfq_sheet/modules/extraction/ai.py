from __future__ import annotations

import time
from typing import Any, Protocol

import httpx

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event, monotonic_ms
from rfq_sheet.modules.extraction.prompts import PromptPair

logger = get_logger(__name__)


class ExtractionUnavailableError(RuntimeError):
    pass


class ChatModel(Protocol):
    def complete(self, prompt: PromptPair) -> str: ...


class OpenAIChatModel:
    """
    Chat-completions client for OpenAI-compatible endpoints.

    One request per call, no retries. Transport errors, non-2xx statuses and
    malformed envelopes surface as `ExtractionUnavailableError`; a refusal comes
    back as an empty reply.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._model = model or settings.openai_model
        self._temperature = (
            float(temperature) if temperature is not None else float(settings.openai_temperature)
        )
        self._timeout = float(timeout_seconds or settings.openai_timeout_seconds or 60.0)

    def complete(self, prompt: PromptPair) -> str:
        if not self._api_key:
            raise ExtractionUnavailableError("OpenAI API key is not configured")

        payload: dict[str, Any] = {
            "model": self._model,
            "temperature": self._temperature,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        url = self._base_url + "/chat/completions"

        start = time.monotonic()
        log_event(
            logger,
            "extraction.llm.request",
            model=self._model,
            prompt_chars=len(prompt.user),
        )
        try:
            resp = httpx.post(
                url,
                headers=headers,
                json=payload,
                timeout=self._timeout,
                follow_redirects=True,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._log_failure(start, reason="http_status", status_code=e.response.status_code)
            raise ExtractionUnavailableError(
                f"Model endpoint returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            self._log_failure(start, reason=type(e).__name__)
            raise ExtractionUnavailableError("Model endpoint unreachable") from e

        try:
            raw = resp.json()
            msg = raw["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            self._log_failure(start, reason="bad_envelope")
            raise ExtractionUnavailableError("Model response envelope is malformed") from e

        if isinstance(msg, dict) and msg.get("refusal"):
            # Refusals recover to zero items.
            log_event(
                logger,
                "extraction.llm.refusal",
                model=self._model,
                duration_ms=monotonic_ms(start),
            )
            return ""
        content = msg.get("content") if isinstance(msg, dict) else None
        if not isinstance(content, str):
            self._log_failure(start, reason="no_content")
            raise ExtractionUnavailableError("Model response has no text content")

        log_event(
            logger,
            "extraction.llm.response",
            model=self._model,
            response_chars=len(content),
            duration_ms=monotonic_ms(start),
        )
        return content

    def _log_failure(self, start: float, *, reason: str, status_code: int | None = None) -> None:
        log_event(
            logger,
            "extraction.llm.failure",
            model=self._model,
            reason=reason,
            status_code=status_code,
            duration_ms=monotonic_ms(start),
        )
