from __future__ import annotations

import time
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from ec2_dashboard.app.models.config import ReadinessConfig
from ec2_dashboard.util.errors import DependencyNotReady
from ec2_dashboard.util.logging import get_logger, log_event

T = TypeVar("T")

logger = get_logger("ec2_dashboard.readiness")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    log_event(
        logger,
        "dependency_not_ready",
        attempt=retry_state.attempt_number,
        next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc) if exc else None,
    )


def _retrying(readiness: ReadinessConfig, sleep: Callable[[float], None]) -> Retrying:
    return Retrying(
        stop=stop_after_delay(readiness.deadline_seconds) | stop_after_attempt(readiness.max_attempts),
        wait=wait_exponential(multiplier=readiness.poll_initial_seconds, max=readiness.poll_max_seconds),
        retry=retry_if_exception_type(DependencyNotReady),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )


def call_when_ready(
    fn: Callable[[], T],
    *,
    readiness: ReadinessConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it stops raising DependencyNotReady or the deadline passes."""
    return _retrying(readiness, sleep)(fn)


def wait_until(
    check: Callable[[], bool],
    *,
    what: str,
    readiness: ReadinessConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    def probe() -> None:
        if not check():
            raise DependencyNotReady(f"{what} not observed before deadline", step=what)

    call_when_ready(probe, readiness=readiness, sleep=sleep)
