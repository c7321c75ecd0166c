"""Structured Completion Client — wraps AsyncAnthropic with 429 backoff and JSON schema parsing.

Invariants:
    - Rate limits (429): up to max_retries retries, delays base_delay_ms * 2**attempt
      (2s, 4s, 8s by default), then ProviderThrottledError
    - Any other non-2xx status, connection failure or timeout: ProviderUnavailableError
      immediately, carrying the provider status — never retried
    - 2xx: first non-blank text block -> JSON -> schema; result is a Completion
      (ok / malformed / empty), never a partially-validated value
    - Retry counters and delays are local to one complete() call
    - asyncio.CancelledError is never caught

Design Decisions:
    - SDK retries disabled (max_retries=0): exactly one retry policy, owned here
    - Jitter configurable but off by default so backoff timing is reproducible
    - Syntactic only: domain checks live in core (validate_plan, routine_rules)
    - JSON extraction tolerates a markdown fence around the object (direct parse,
      then the outermost {...} block)
"""

import asyncio
import base64
import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import anthropic
from anthropic import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
)
from pydantic import BaseModel, ValidationError

from orbit.core.domain_types import CompletionStatus
from orbit.core.errors import (
    EmptyProviderOutputError,
    ErrorContext,
    MalformedProviderOutputError,
    ProviderThrottledError,
    ProviderUnavailableError,
)
from orbit.core.prompt_sections import JSON_ONLY_SYSTEM
from orbit.core.validate_image import ValidatedImage

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class Completion(Generic[T]):
    """Terminal state of a completion that reached a 2xx response."""
    status: CompletionStatus
    value: T | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> "Completion[T]":
        return cls(CompletionStatus.OK, value=value)

    @classmethod
    def malformed(cls, reason: str) -> "Completion[T]":
        return cls(CompletionStatus.MALFORMED, reason=reason)

    @classmethod
    def empty(cls) -> "Completion[T]":
        return cls(CompletionStatus.EMPTY)

    @property
    def is_ok(self) -> bool:
        return self.status == CompletionStatus.OK

    def unwrap(self, what: str, context: ErrorContext | None = None) -> T:
        """Value for callers where both malformed and empty are errors."""
        if self.status == CompletionStatus.MALFORMED:
            raise MalformedProviderOutputError(self.reason or "unknown", context)
        if self.status == CompletionStatus.EMPTY:
            raise EmptyProviderOutputError(what, context)
        return self.value


def parse_json_object(text: str) -> Any:
    """Decode provider text as JSON, falling back to the outermost {...} block."""
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    match = _JSON_BLOCK.search(text)
    if match:
        return json.loads(match.group(0))
    raise json.JSONDecodeError("no JSON object found", text, 0)


class StructuredCompletionClient:
    """One prompt in, one schema-validated JSON object out."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.1,
        max_retries: int = 3,
        base_delay_ms: int = 2000,
        jitter: float = 0.0,
        timeout_seconds: float = 60,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.jitter = jitter

    async def complete(
        self,
        prompt: str,
        schema: type[T],
        *,
        image: ValidatedImage | None = None,
        context: ErrorContext | None = None,
    ) -> Completion[T]:
        messages = [{"role": "user", "content": self._content(prompt, image)}]
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=JSON_ONLY_SYSTEM,
                    messages=messages,
                )
            except RateLimitError:
                await self._handle_rate_limit(attempt, context)
                continue
            except APIStatusError as e:
                logger.error(
                    f"Provider returned {e.status_code}",
                    extra={"attempt": attempt + 1, "error_code": "PROVIDER_UNAVAILABLE"},
                )
                raise ProviderUnavailableError(
                    str(e), provider_status=e.status_code, context=context,
                )
            except APIConnectionError as e:
                # Also covers APITimeoutError
                logger.error(
                    f"Provider unreachable: {e}",
                    extra={"attempt": attempt + 1, "error_code": "PROVIDER_UNAVAILABLE"},
                )
                raise ProviderUnavailableError(str(e), context=context)

            self._log_success(response, attempt)
            return self._parse(response, schema)

        raise ProviderThrottledError(self.max_retries + 1, context)

    def _content(self, prompt: str, image: ValidatedImage | None) -> list[dict]:
        content: list[dict] = []
        if image is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                },
            })
        content.append({"type": "text", "text": prompt})
        return content

    def _parse(self, response, schema: type[T]) -> Completion[T]:
        text = _first_text(response)
        if text is None:
            logger.warning("Provider returned no text", extra={"error_code": "EMPTY"})
            return Completion.empty()
        try:
            data = parse_json_object(text)
        except json.JSONDecodeError as e:
            logger.warning(
                f"Provider text is not JSON: {e}", extra={"error_code": "MALFORMED"},
            )
            return Completion.malformed(f"invalid JSON: {e}")
        try:
            return Completion.ok(schema.model_validate(data))
        except ValidationError as e:
            logger.warning(
                f"Provider JSON does not match {schema.__name__}: "
                f"{e.error_count()} errors",
                extra={"error_code": "MALFORMED"},
            )
            return Completion.malformed(
                f"{schema.__name__} mismatch: {e.errors()[0]['msg']}"
            )

    def _log_success(self, response, attempt: int) -> None:
        usage = getattr(response, "usage", None)
        logger.info(
            "Anthropic API success",
            extra={
                "attempt": attempt + 1,
                "input_tokens": getattr(usage, "input_tokens", None),
                "output_tokens": getattr(usage, "output_tokens", None),
            },
        )

    async def _handle_rate_limit(
        self, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Sleep before the next attempt, or raise once retries are spent."""
        if attempt >= self.max_retries:
            logger.error(
                "Rate limit exceeded after retries",
                extra={"attempt": attempt + 1, "error_code": "PROVIDER_THROTTLED"},
            )
            raise ProviderThrottledError(attempt + 1, context)
        delay = self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> float:
        """base_delay_ms * 2**attempt, optionally scaled by ±jitter."""
        delay = self.base_delay_ms * (2 ** attempt)
        if self.jitter:
            delay *= random.uniform(1 - self.jitter, 1 + self.jitter)  # nosec B311
        return delay


def _first_text(response) -> str | None:
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            text = getattr(block, "text", None)
            if text and text.strip():
                return text
    return None
