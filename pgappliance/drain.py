"""
Removal of the pglogical extension ahead of a restore.

Drops every subscription and the extension, then waits for the pglogical
manager connections to go away. The whole step is best effort: failures are
logged and absorbed, and the wait is bounded.
"""

import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .command_runner import CommandRunner
from .errors import ExternalCommandError
from .models import ConnectionParams
from .utils.logger import setup_logger
from .utils.polling import BoundedPoller

DROP_SUBSCRIPTIONS_SQL = """
SELECT
  drop_subscription
FROM
  pglogical.subscription subs,
  LATERAL pglogical.drop_subscription(subs.sub_name)
"""

DROP_EXTENSION_SQL = "DROP EXTENSION pglogical CASCADE"

MANAGER_CONNECTIONS_SQL = """
SELECT application_name
FROM pg_stat_activity
WHERE application_name LIKE 'pglogical manager%'
"""

ROW_COUNT_PATTERN = re.compile(r'^\((\d+) rows?\)', re.MULTILINE)


class DrainState(Enum):
    UNLOADING = "unloading"
    WAITING = "waiting"
    DRAINED = "drained"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class QuiescePollState:
    """Progress of the wait for manager connections to close."""
    remaining_attempts: int
    connection_count: Optional[int] = None


@dataclass(frozen=True)
class DrainResult:
    state: DrainState
    attempts: int = 0
    remaining_connections: Optional[int] = None

    @property
    def drained(self) -> bool:
        return self.state is DrainState.DRAINED


def parse_row_count(output: str) -> int:
    """Read the row count from psql's ``(N rows)`` footer; no footer counts as zero."""
    match = ROW_COUNT_PATTERN.search(output or "")
    return int(match.group(1)) if match else 0


class LogicalReplicationDrain:
    """Detaches pglogical from a database and waits for its manager to quiesce."""

    def __init__(
        self,
        runner: CommandRunner,
        max_attempts: int = 60,
        interval: float = 5.0,
        cancel_event: Optional[threading.Event] = None,
        logger=None
    ):
        """
        Initialize drain.

        Args:
            runner: Command runner used for psql
            max_attempts: Maximum number of connection-count polls
            interval: Seconds between polls
            cancel_event: Event that abandons the wait when set
            logger: Logger instance (optional)
        """
        self.runner = runner
        self.max_attempts = max_attempts
        self.interval = interval
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.logger = logger or setup_logger(__name__)
        self.state = DrainState.UNLOADING

    def _unload(self, connection: ConnectionParams) -> None:
        self.runner.psql(connection, DROP_SUBSCRIPTIONS_SQL)
        self.runner.psql(connection, DROP_EXTENSION_SQL)

    def count_manager_connections(self, connection: ConnectionParams) -> int:
        outcome = self.runner.psql(connection, MANAGER_CONNECTIONS_SQL)
        return parse_row_count(outcome.stdout)

    def drain(self, connection: ConnectionParams) -> DrainResult:
        """
        Remove pglogical from the connection's database and wait for it to quiesce.

        Never raises for command failures, timeouts or cancellation; the
        returned result says how the drain ended.
        """
        self.state = DrainState.UNLOADING
        try:
            self._unload(connection)
        except ExternalCommandError as e:
            self.state = DrainState.FAILED
            self.logger.info(f"Ignoring failure to remove pglogical before restore: {e}")
            return DrainResult(self.state)

        self.state = DrainState.WAITING
        poll_state = QuiescePollState(remaining_attempts=self.max_attempts)

        def probe() -> int:
            poll_state.remaining_attempts -= 1
            poll_state.connection_count = self.count_manager_connections(connection)
            return poll_state.connection_count

        def on_retry(attempt: int, count: int) -> None:
            self.logger.info(f"Waiting on {count} pglogical connections to close...")

        poller = BoundedPoller(self.max_attempts, self.interval, self.cancel_event)
        try:
            result = poller.poll(probe, lambda count: count == 0, on_retry)
        except ExternalCommandError as e:
            self.state = DrainState.FAILED
            self.logger.info(f"Ignoring failure to remove pglogical before restore: {e}")
            return DrainResult(
                self.state,
                self.max_attempts - poll_state.remaining_attempts,
                poll_state.connection_count
            )

        if result.satisfied:
            self.state = DrainState.DRAINED
        elif result.cancelled:
            self.state = DrainState.CANCELLED
            self.logger.info("pglogical drain cancelled")
        else:
            self.state = DrainState.TIMED_OUT
            self.logger.warning(
                f"Gave up waiting after {result.attempts} attempts; "
                f"{result.last_value} pglogical connections still open"
            )

        return DrainResult(self.state, result.attempts, poll_state.connection_count)
