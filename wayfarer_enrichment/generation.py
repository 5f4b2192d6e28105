"""
Generation client: one structured (JSON-mode) chat completion per prompt.

Transient provider failures (rate limits, timeouts, connection errors, 5xx)
are retried with exponential jittered backoff; after the last attempt they
surface as typed GenerationErrors. Unparseable output is never retried.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, Optional

import httpx
from openai import (
    OpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
)
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from wayfarer_enrichment.errors import (
    GenerationCancelled,
    GenerationTimeout,
    MalformedOutput,
    ProviderError,
    RateLimited,
)
from wayfarer_enrichment.prompts import PromptRequest

logger = logging.getLogger(__name__)

# Pinned snapshot; never an alias that floats to a newer model.
DEFAULT_MODEL = "gpt-4o-2024-08-06"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_ATTEMPTS = 3


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (RateLimitError, APITimeoutError, APIConnectionError)):
        return True
    if isinstance(exc, APIStatusError):
        return exc.status_code >= 500
    return False


class GenerationClient:
    """Wraps an OpenAI client; construct once per run and inject it."""

    def __init__(
        self,
        client: Any,
        model: str = DEFAULT_MODEL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        wait=None,
        max_tokens: Optional[int] = None,
    ):
        self.client = client
        self.model = model
        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else wait_exponential_jitter(initial=1, max=20)
        self.max_tokens = max_tokens

    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        **kwargs,
    ) -> "GenerationClient":
        if not api_key:
            raise ValueError("OpenAI API key must be provided via config or OPENAI_API_KEY environment variable")
        # Retries are ours (tenacity); the SDK's own retry loop is switched off.
        client = OpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(timeout, connect=10.0),
            max_retries=0,
        )
        return cls(client, model=model, max_attempts=max_attempts, **kwargs)

    def _complete(self, prompt: PromptRequest):
        params = {
            "model": self.model,
            "messages": prompt.messages(),
            "temperature": prompt.temperature,
            "response_format": {"type": "json_object"},
        }
        if self.max_tokens:
            params["max_tokens"] = self.max_tokens
        return self.client.chat.completions.create(**params)

    def _call_with_retry(self, prompt: PromptRequest, token: Optional["CancellationToken"] = None):
        def backoff(seconds: float) -> None:
            # Backoff sleeps wake on cancellation; no further attempt is made.
            if token is None:
                time.sleep(seconds)
            elif not token.sleep(seconds):
                raise GenerationCancelled(f"cancelled during retry backoff ({token.reason})")

        retrying = Retrying(
            sleep=backoff,
            wait=self.wait,
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception(_is_transient),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                f"Transient provider error on attempt {state.attempt_number}/{self.max_attempts} "
                f"({type(state.outcome.exception()).__name__}), backing off"
            ),
        )
        return retrying(self._complete, prompt)

    def generate(self, prompt: PromptRequest, token: Optional["CancellationToken"] = None) -> Dict[str, Any]:
        """Return the parsed JSON object, or raise a GenerationError subclass."""
        if token is not None and token.cancelled:
            raise GenerationCancelled(f"cancelled before the request ({token.reason})")
        started = time.time()
        try:
            resp = self._call_with_retry(prompt, token)
        except RateLimitError as e:
            raise RateLimited(f"rate limited after {self.max_attempts} attempts: {e}") from e
        except APITimeoutError as e:
            raise GenerationTimeout(f"timed out after {self.max_attempts} attempts") from e
        except (AuthenticationError, BadRequestError) as e:
            raise ProviderError(f"request rejected by provider ({type(e).__name__}): {e}") from e
        except (APIConnectionError, APIStatusError) as e:
            raise ProviderError(f"upstream error after {self.max_attempts} attempts: {e}") from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise MalformedOutput("provider returned an empty message", raw=content)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedOutput(f"response is not valid JSON: {e}", raw=content) from e
        if not isinstance(data, dict):
            raise MalformedOutput(f"expected a JSON object, got {type(data).__name__}", raw=content)

        latency_ms = int((time.time() - started) * 1000)
        usage = getattr(resp, "usage", None)
        logger.debug(
            f"Generated {prompt.schema_name} in {latency_ms}ms "
            f"(prompt_tokens={getattr(usage, 'prompt_tokens', None)})"
        )
        return data


class CancellationToken:
    """Operator stop signal checked before every sleep and network call."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns False if woken by cancellation."""
        if seconds <= 0:
            return not self.cancelled
        return not self._event.wait(seconds)


class Pacer:
    """
    Enforces the minimum gap between successive provider calls.

    The first call goes straight through; later calls wait out whatever is
    left of `request_delay` since the previous one.
    """

    def __init__(self, request_delay: float, batch_delay: float, token: CancellationToken, clock=time.monotonic):
        self.request_delay = request_delay
        self.batch_delay = batch_delay
        self.token = token
        self.clock = clock
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait_turn(self) -> bool:
        with self._lock:
            if self._last is not None:
                remaining = self.request_delay - (self.clock() - self._last)
                if remaining > 0 and not self.token.sleep(remaining):
                    return False
            if self.token.cancelled:
                return False
            self._last = self.clock()
            return True

    def between_batches(self) -> bool:
        return self.token.sleep(self.batch_delay)
