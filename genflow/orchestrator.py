# genflow/orchestrator.py
"""
Retry/poll loop that drives one GenerationRequest to a terminal outcome.

Blocking: the calling thread sleeps between attempts. Provider calls for
one request are strictly sequential.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from genflow.config import Settings
from genflow.errors import ErrorKind
from genflow.models import Completed, Failed, GenerationRequest, Pending, ProviderOutcome
from genflow.providers.base import ProviderClient

log = logging.getLogger(__name__)

SleepFn = Callable[[float], None]
ClockFn = Callable[[], float]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 15
    initial_delay: float = 3.0
    multiplier: float = 1.5
    max_delay: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay=settings.RETRY_INITIAL_DELAY,
            multiplier=settings.RETRY_MULTIPLIER,
            max_delay=settings.RETRY_MAX_DELAY,
        )

    @classmethod
    def fixed(cls, max_attempts: int, delay: float) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, initial_delay=delay, multiplier=1.0, max_delay=delay)

    def first_delay(self) -> float:
        return min(self.initial_delay, self.max_delay)

    def next_delay(self, delay: float) -> float:
        return min(delay * self.multiplier, self.max_delay)

    def delays(self) -> Iterator[float]:
        """The waits between consecutive attempts (max_attempts - 1 of them)."""
        delay = self.first_delay()
        for _ in range(self.max_attempts - 1):
            yield delay
            delay = self.next_delay(delay)


@dataclass
class RetryState:
    attempt: int = 0
    delay: float = 0.0
    job_handle: Optional[str] = None


class Orchestrator:
    """
    One instance per request. `run` calls `create` until a job handle is
    known, then `poll` with that handle; it stops on Completed, on a
    non-retryable Failed, or when the attempt ceiling (or deadline) is hit.
    """

    def __init__(
        self,
        provider: ProviderClient,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFn = time.sleep,
        clock: ClockFn = time.monotonic,
        deadline: Optional[float] = None,
    ):
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        # absolute, in clock() units
        self.deadline = deadline
        self.calls = 0

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(self.deadline - self._clock(), 0.0)

    def _call(self, request: GenerationRequest, state: RetryState) -> ProviderOutcome:
        self.calls += 1
        timeout = self.remaining()
        if state.job_handle:
            return self.provider.poll(state.job_handle, timeout=timeout)
        return self.provider.create(request, timeout=timeout)

    def run(self, request: GenerationRequest) -> ProviderOutcome:
        state = RetryState(delay=self.policy.first_delay())
        name = self.provider.name

        while True:
            outcome = self._call(request, state)

            if isinstance(outcome, Completed):
                log.info("provider=%s event=orchestrate.ok calls=%s", name, self.calls)
                return outcome

            if isinstance(outcome, Failed) and not outcome.retryable:
                log.info(
                    "provider=%s event=orchestrate.fail kind=%s calls=%s",
                    name,
                    outcome.kind.value,
                    self.calls,
                )
                return outcome

            if isinstance(outcome, Pending):
                state.job_handle = outcome.job_handle
                last_message = f"still {outcome.status or 'pending'}"
            else:
                # retryable failure on an existing job keeps polling it
                if outcome.job_handle:
                    state.job_handle = outcome.job_handle
                last_message = outcome.message

            state.attempt += 1
            if state.attempt >= self.policy.max_attempts:
                log.warning("provider=%s event=orchestrate.exhausted attempts=%s", name, state.attempt)
                return Failed(
                    ErrorKind.MAX_RETRIES_EXCEEDED,
                    f"Failed after {state.attempt} attempts: {last_message}",
                    job_handle=state.job_handle,
                )

            if self.deadline is not None and self._clock() + state.delay > self.deadline:
                log.warning("provider=%s event=orchestrate.deadline attempts=%s", name, state.attempt)
                return Failed(
                    ErrorKind.MAX_RETRIES_EXCEEDED,
                    f"Failed after {state.attempt} attempts: request deadline reached ({last_message})",
                    job_handle=state.job_handle,
                )

            log.debug(
                "provider=%s event=orchestrate.wait attempt=%s delay=%.2f job=%s",
                name,
                state.attempt,
                state.delay,
                state.job_handle,
            )
            self._sleep(state.delay)
            state.delay = self.policy.next_delay(state.delay)
