"""
Agent Buddy Router — the single network call.

Sends chat messages to the OpenAI-compatible completion endpoint through
LiteLLM. Handles retries, usage accounting, and structured logging.
Everything slow or unreliable about talking to the model lives here.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import litellm
from loguru import logger
from pydantic import BaseModel
from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from agentbuddy.config_loader import EndpointConfig


class EndpointFailure(Exception):
    """The completion call itself failed (network, auth, rate limit)."""


# ---------------------------------------------------------------------------
# Usage Tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageRecord:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    call_count: int = 0


@dataclass
class UsageTracker:
    """Accumulates token + dollar spend for the session."""
    usage: UsageRecord = field(default_factory=UsageRecord)

    def record(self, response: Any) -> None:
        """Record usage from a LiteLLM response.

        Token counts come from the response's `usage` block; cost comes
        from LiteLLM's price table and stays at zero for models it does
        not know.
        """
        usage = getattr(response, "usage", None)
        if usage:
            self.usage.prompt_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self.usage.completion_tokens += getattr(usage, "completion_tokens", 0) or 0
            self.usage.total_tokens += getattr(usage, "total_tokens", 0) or 0

        try:
            self.usage.estimated_cost += litellm.completion_cost(completion_response=response)
        except Exception as e:
            logger.debug(f"[ROUTER] No cost estimate: {e}")

        self.usage.call_count += 1

    def summary(self) -> dict:
        return {
            "total_tokens": self.usage.total_tokens,
            "prompt_tokens": self.usage.prompt_tokens,
            "completion_tokens": self.usage.completion_tokens,
            "estimated_cost": round(self.usage.estimated_cost, 4),
            "call_count": self.usage.call_count,
        }


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class RouterResponse(BaseModel):
    content: str
    model: str
    tokens_used: int = 0
    latency_ms: int = 0


class Router:
    """
    Completion router.

    The planner calls `router.complete(messages)`; the router adds the
    endpoint, credentials and retry policy and returns the raw text.
    """

    def __init__(self, endpoint: EndpointConfig, api_key: str):
        self.endpoint = endpoint
        self.api_key = api_key
        self.usage = UsageTracker()

        litellm.suppress_debug_info = True

    def _build_kwargs(
        self,
        messages: list[dict[str, str]],
        response_format: dict | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.endpoint.model,
            "messages": messages,
            "api_base": self.endpoint.base_url,
            "api_key": self.api_key,
            "temperature": self.endpoint.temperature,
            "max_tokens": self.endpoint.max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format
        return kwargs

    def complete(
        self,
        messages: list[dict[str, str]],
        response_format: dict | None = None,
    ) -> RouterResponse:
        """Send a completion request through LiteLLM.

        Retries transient failures with exponential backoff up to
        `endpoint.request_attempts` times.

        Raises:
            EndpointFailure: If every attempt fails.
        """
        kwargs = self._build_kwargs(messages, response_format)
        start = time.monotonic()

        logger.debug(f"[ROUTER] → {self.endpoint.model} ({len(messages)} messages)")

        retrying = Retrying(
            stop=stop_after_attempt(self.endpoint.request_attempts),
            wait=wait_exponential(min=self.endpoint.retry_wait_min, max=self.endpoint.retry_wait_max),
            before_sleep=lambda state: logger.warning(
                f"[ROUTER] Attempt {state.attempt_number} failed: {state.outcome.exception()}"
            ),
        )
        try:
            response = retrying(litellm.completion, **kwargs)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(f"[ROUTER] Endpoint failed after {self.endpoint.request_attempts} attempts: {cause}")
            raise EndpointFailure(str(cause)) from cause

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.usage.record(response)

        content = response.choices[0].message.content or ""
        tokens = getattr(getattr(response, "usage", None), "total_tokens", 0) or 0

        logger.debug(
            f"[ROUTER] complete — "
            f"{self.usage.usage.total_tokens} tokens, "
            f"${self.usage.usage.estimated_cost:.4f}, "
            f"{elapsed_ms}ms"
        )

        return RouterResponse(
            content=content,
            model=self.endpoint.model,
            tokens_used=tokens,
            latency_ms=elapsed_ms,
        )
