"""
Cancellable bounded polling.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class PollResult:
    """Outcome of a bounded poll."""
    satisfied: bool
    attempts: int
    last_value: Any = None
    cancelled: bool = False


class BoundedPoller:
    """Runs a probe up to ``max_attempts`` times with an interruptible wait in between."""

    def __init__(
        self,
        max_attempts: int = 60,
        interval: float = 5.0,
        cancel_event: Optional[threading.Event] = None
    ):
        """
        Initialize poller.

        Args:
            max_attempts: Maximum number of probe calls
            interval: Seconds to wait between attempts
            cancel_event: Event that aborts the poll when set
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.interval = interval
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    def poll(
        self,
        probe: Callable[[], Any],
        done: Callable[[Any], bool],
        on_retry: Optional[Callable[[int, Any], None]] = None
    ) -> PollResult:
        """
        Call ``probe`` until ``done(value)`` holds, attempts run out, or the poll is cancelled.

        Args:
            probe: Produces the observed value
            done: Predicate on the observed value
            on_retry: Called with (attempt, value) before each wait

        Returns:
            PollResult describing how the poll ended
        """
        value = None
        for attempt in range(1, self.max_attempts + 1):
            if self.cancel_event.is_set():
                return PollResult(False, attempt - 1, value, cancelled=True)

            value = probe()
            if done(value):
                return PollResult(True, attempt, value)

            if attempt == self.max_attempts:
                break

            if on_retry:
                on_retry(attempt, value)
            # Event.wait returns True as soon as the event is set
            if self.cancel_event.wait(self.interval):
                return PollResult(False, attempt, value, cancelled=True)

        return PollResult(False, self.max_attempts, value)

    def cancel(self) -> None:
        self.cancel_event.set()
