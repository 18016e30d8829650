"""
OpenAI Service - LLM completions using the OpenAI API.

Works with any OpenAI-compatible endpoint via base_url. Transient errors are
retried with tenacity, bounded by both an attempt count and the caller's
timeout; everything else surfaces as ProviderError.
"""
from typing import Dict, Optional
import logging
import re
import time

import openai
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)
from tenacity import RetryCallState

from matchscore.config_loader import ModelPricing
from matchscore.exceptions import ProviderError
from matchscore.llm.interfaces import Completion, LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

_RETRYABLE = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    if isinstance(exc, openai.RateLimitError):
        logger.warning(
            "Rate limit hit (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )
    else:
        logger.warning(
            "Transient API error (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )


def _parse_reset_duration(value: str) -> float:
    """Parse a reset-timer header value like '1s', '500ms', '1m30s' into seconds."""
    total = 0.0
    for amount, unit in re.findall(r"([\d.]+)(ms|s|m|h)", value):
        a = float(amount)
        if unit == "ms":
            total += a / 1000
        elif unit == "s":
            total += a
        elif unit == "m":
            total += a * 60
        else:  # h
            total += a * 3600
    return total


def _wait_from_rate_limit_headers(exc: openai.RateLimitError) -> float:
    """Longest wait declared by retry-after / x-ratelimit-reset-* headers, or 0.0."""
    headers = getattr(getattr(exc, "response", None), "headers", None)
    if not headers:
        return 0.0

    candidates = []
    retry_after = headers.get("retry-after", "")
    if retry_after:
        try:
            candidates.append(float(retry_after))
        except ValueError:
            pass

    for header in ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens"):
        parsed = _parse_reset_duration(headers.get(header, ""))
        if parsed > 0:
            candidates.append(parsed)

    return max(candidates) if candidates else 0.0


def _wait_respecting_retry_after(retry_state: RetryCallState) -> float:
    """Honour server rate-limit timers, otherwise exponential backoff 1 -> 2 -> 4 ... capped at 10s."""
    exc = retry_state.outcome.exception()
    if isinstance(exc, openai.RateLimitError):
        wait = _wait_from_rate_limit_headers(exc)
        if wait > 0:
            return min(wait, 30)

    exp = wait_exponential(multiplier=1, min=1, max=10)
    return exp(retry_state)


def _llm_retry(max_attempts: int, max_delay: float):
    """Return a tenacity @retry decorator bounded by attempts and elapsed time."""
    return retry(
        retry=retry_if_exception_type(_RETRYABLE),
        wait=_wait_respecting_retry_after,
        stop=stop_after_attempt(max_attempts) | stop_after_delay(max_delay),
        before_sleep=_log_retry,
        reraise=True,
    )


class OpenAIService(LLMProvider):
    """
    OpenAI LLM Service.

    Chat completions in JSON mode with per-request timeouts and cost tracking.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        pricing: Optional[Dict[str, ModelPricing]] = None,
        max_retries: int = 3,
        client: Optional[OpenAI] = None,
    ):
        if client is None:
            client_kwargs = {'max_retries': 0}
            if api_key:
                client_kwargs['api_key'] = api_key
            if base_url:
                client_kwargs['base_url'] = base_url
            client = OpenAI(**client_kwargs)

        self.client = client
        self.pricing = pricing or {}
        self.max_retries = max(1, max_retries)

    def estimate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        price = self.pricing.get(model)
        if price is None:
            return 0.0
        return round(
            prompt_tokens / 1000 * price.input_per_1k + completion_tokens / 1000 * price.output_per_1k,
            6,
        )

    def complete(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
        timeout: float,
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
    ) -> Completion:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        deadline = time.monotonic() + timeout

        @_llm_retry(self.max_retries, timeout)
        def _create():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ProviderError(f"LLM request timed out after {timeout:.1f}s")
            return self.client.chat.completions.create(timeout=remaining, **request)

        try:
            response = _create()
        except openai.APITimeoutError as e:
            raise ProviderError(f"LLM request timed out after {timeout:.1f}s") from e
        except openai.OpenAIError as e:
            raise ProviderError(f"LLM request failed: {e}") from e

        try:
            text = response.choices[0].message.content
        except (IndexError, AttributeError) as e:
            raise ProviderError(f"Unexpected LLM response shape: {e}") from e
        if not text:
            raise ProviderError("LLM returned an empty response")

        usage = {}
        if getattr(response, "usage", None) is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }
        cost = self.estimate_cost(model, usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0))

        logger.info(
            "LLM completion model=%s tokens=%s cost=$%.4f",
            model, usage.get("total_tokens", "?"), cost,
        )
        return Completion(text=text, usage=usage, cost_usd=cost, model=getattr(response, "model", model))
