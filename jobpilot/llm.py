"""LLM access through an OpenAI-compatible chat endpoint.

Defaults to Gemini's OpenAI-compatible API; any compatible provider works by
setting ``JOBPILOT_LLM_BASE_URL`` / ``JOBPILOT_LLM_MODEL``.
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator

import openai
from openai import OpenAI

from jobpilot.config import Settings, load_settings
from jobpilot.errors import MalformedResponseError, ProviderError, QuotaExceededError
from jobpilot.log import get_logger

log = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_json(text: str, context: str) -> Any:
    """Parse a JSON answer, tolerating a surrounding ```json fence."""
    cleaned = _FENCE_RE.sub("", (text or "").strip()).strip()
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as exc:
        log.error("Failed to parse JSON for %s: %s", context, exc)
        log.debug("Original text: %s", text)
        raise MalformedResponseError(context) from exc


def _is_quota_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return "quota" in str(exc).lower() or "429" in str(exc)


def _translate(exc: Exception) -> ProviderError:
    if _is_quota_error(exc):
        return QuotaExceededError()
    if isinstance(exc, openai.AuthenticationError):
        return ProviderError("The current API key is not valid. Check the keys in the profile settings.")
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError("Network error while calling the LLM API. Please try again.")
    if isinstance(exc, openai.APIStatusError):
        return ProviderError(f"The LLM API answered with status {exc.status_code}.")
    return ProviderError("The LLM request failed.")


class LLMClient:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()

    def _client(self, api_key: str) -> OpenAI:
        return OpenAI(
            api_key=api_key,
            base_url=self.settings.llm_base_url,
            timeout=max(self.settings.http_timeout, 60.0),
            max_retries=0,
        )

    def complete(self, prompt: str, api_key: str, *, schema: dict | None = None, json_mode: bool = False) -> str:
        """Single request/response call; returns the raw text of the answer."""
        kwargs: dict[str, Any] = {}
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema},
            }
        elif json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            r = self._client(api_key).chat.completions.create(
                model=self.settings.llm_model,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except openai.OpenAIError as exc:
            log.warning("LLM request failed: %s", type(exc).__name__)
            raise _translate(exc) from exc
        if not r.choices:
            log.warning("LLM returned no choices")
            raise ProviderError("The LLM returned no answer.")
        return (r.choices[0].message.content or "").strip()

    def complete_json(self, prompt: str, api_key: str, *, context: str, schema: dict | None = None) -> Any:
        text = self.complete(prompt, api_key, schema=schema, json_mode=schema is None)
        return parse_json(text, context)

    def stream(self, prompt: str, api_key: str) -> Iterator[str]:
        """Yield text deltas in the order the provider sends them."""
        try:
            chunks = self._client(api_key).chat.completions.create(
                model=self.settings.llm_model,
                messages=[{"role": "user", "content": prompt}],
                stream=True,
            )
            for chunk in chunks:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as exc:
            log.warning("LLM stream failed: %s", type(exc).__name__)
            raise _translate(exc) from exc


def check_api_key(llm: LLMClient, api_key: str) -> bool:
    """Cheap connectivity/auth check for a single key."""
    if not api_key.strip():
        return False
    try:
        llm.complete("test", api_key)
        return True
    except ProviderError as exc:
        log.info("API key test failed: %s", exc)
        return False
