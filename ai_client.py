"""Text completion client: Gemini behind a per-model circuit breaker.

One request per call and no retries: a failure is recorded and re-raised for
the caller to turn into its fallback text. After three consecutive failures
the model's circuit opens and calls fail fast for 60 seconds, then a single
trial call is let through.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

Prompt = Union[str, list[Any]]


class AIUnavailableError(RuntimeError):
    """The completion service failed or its circuit is open."""


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ModelState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-model state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._models: dict[str, _ModelState] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _get_state(self, model: str) -> _ModelState:
        if model not in self._models:
            self._models[model] = _ModelState()
        return self._models[model]

    def record_success(self, model: str) -> None:
        with self._lock:
            state = self._get_state(model)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, model: str) -> None:
        with self._lock:
            state = self._get_state(model)
            state.failures += 1
            state.last_failure_time = self._clock()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, model: str) -> bool:
        with self._lock:
            state = self._get_state(model)
            if state.state == "open":
                if self._clock() - state.last_failure_time >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False
                return True
            return False

    def get_state(self, model: str) -> str:
        with self._lock:
            return self._get_state(model).state


# ── Gemini ──────────────────────────────────────────────────

class GeminiTextClient:
    def __init__(self, api_key: str, breaker: CircuitBreaker | None = None) -> None:
        self._api_key = api_key
        self.breaker = breaker or CircuitBreaker()

    def generate(self, model_name: str, prompt: Prompt) -> str:
        """Return the completion text for a prompt string or a list of parts.

        Parts may mix strings and inline images given as
        ``{"mime_type": ..., "data": bytes}``.
        """
        if self.breaker.is_open(model_name):
            raise AIUnavailableError(f"Circuit breaker open for model: {model_name}")
        if not self._api_key:
            self.breaker.record_failure(model_name)
            raise AIUnavailableError("GOOGLE_API_KEY is not configured")

        import google.generativeai as genai

        start = time.time()
        try:
            genai.configure(api_key=self._api_key)
            model = genai.GenerativeModel(model_name)
            text = model.generate_content(prompt).text
        except Exception as e:
            self.breaker.record_failure(model_name)
            logger.warning("Gemini call failed (%s): %s", model_name, e)
            raise AIUnavailableError(str(e)) from e

        self.breaker.record_success(model_name)
        logger.info("Gemini %s answered in %d ms", model_name, int((time.time() - start) * 1000))
        return text
