"""Tests for pglogical removal before restore."""

from unittest.mock import MagicMock

import pytest

from pgappliance.command_runner import CommandOutcome
from pgappliance.drain import (
    DROP_EXTENSION_SQL,
    DROP_SUBSCRIPTIONS_SQL,
    MANAGER_CONNECTIONS_SQL,
    DrainState,
    LogicalReplicationDrain,
    parse_row_count,
)
from pgappliance.errors import ExternalCommandError


def psql_rows(count):
    body = "".join(f" pglogical manager {i}\n" for i in range(count))
    footer = "(1 row)" if count == 1 else f"({count} rows)"
    return CommandOutcome(0, f" application_name \n------------------\n{body}{footer}\n\n", "")


def scripted_runner(counts, fail_on=None):
    """Runner whose connection-count query returns the given counts in turn."""
    counts = iter(counts)
    runner = MagicMock()

    def psql(connection, sql):
        if fail_on is not None and sql == fail_on:
            raise ExternalCommandError("psql", 1, 'ERROR:  schema "pglogical" does not exist')
        if sql == MANAGER_CONNECTIONS_SQL:
            return psql_rows(next(counts))
        return CommandOutcome(0, "", "")

    runner.psql.side_effect = psql
    return runner


@pytest.fixture
def event():
    event = MagicMock()
    event.is_set.return_value = False
    event.wait.return_value = False
    return event


def count_queries(runner):
    return [c for c in runner.psql.call_args_list if c[0][1] == MANAGER_CONNECTIONS_SQL]


def test_parse_row_count():
    assert parse_row_count(psql_rows(0).stdout) == 0
    assert parse_row_count(psql_rows(1).stdout) == 1
    assert parse_row_count(psql_rows(3).stdout) == 3
    assert parse_row_count("") == 0


def test_drained_on_first_poll_without_waiting(connection, event):
    runner = scripted_runner([0])
    drain = LogicalReplicationDrain(runner, cancel_event=event, logger=MagicMock())

    result = drain.drain(connection)

    assert result.state is DrainState.DRAINED
    assert result.drained
    assert result.attempts == 1
    event.wait.assert_not_called()
    sqls = [c[0][1] for c in runner.psql.call_args_list]
    assert sqls == [DROP_SUBSCRIPTIONS_SQL, DROP_EXTENSION_SQL, MANAGER_CONNECTIONS_SQL]
    assert all(c[0][0] == connection for c in runner.psql.call_args_list)


def test_waits_until_connections_close(connection, event):
    runner = scripted_runner([2, 1, 0])
    result = LogicalReplicationDrain(runner, cancel_event=event, logger=MagicMock()).drain(connection)

    assert result.state is DrainState.DRAINED
    assert result.attempts == 3
    assert result.remaining_connections == 0
    assert event.wait.call_count == 2


def test_gives_up_after_sixty_attempts_without_raising(connection, event):
    runner = scripted_runner([1] * 60)
    logger = MagicMock()
    drain = LogicalReplicationDrain(runner, cancel_event=event, logger=logger)

    result = drain.drain(connection)

    assert result.state is DrainState.TIMED_OUT
    assert result.attempts == 60
    assert result.remaining_connections == 1
    assert len(count_queries(runner)) == 60
    assert event.wait.call_count == 59
    assert all(c[0] == (5.0,) for c in event.wait.call_args_list)
    logger.warning.assert_called_once()


def test_missing_extension_is_tolerated(connection, event):
    runner = scripted_runner([], fail_on=DROP_SUBSCRIPTIONS_SQL)
    logger = MagicMock()

    result = LogicalReplicationDrain(runner, cancel_event=event, logger=logger).drain(connection)

    assert result.state is DrainState.FAILED
    assert runner.psql.call_count == 1
    assert "Ignoring failure" in logger.info.call_args[0][0]


def test_extension_drop_failure_is_tolerated(connection, event):
    runner = scripted_runner([], fail_on=DROP_EXTENSION_SQL)
    result = LogicalReplicationDrain(runner, cancel_event=event, logger=MagicMock()).drain(connection)

    assert result.state is DrainState.FAILED
    assert count_queries(runner) == []


def test_poll_query_failure_is_tolerated(connection, event):
    runner = scripted_runner([], fail_on=MANAGER_CONNECTIONS_SQL)
    result = LogicalReplicationDrain(runner, cancel_event=event, logger=MagicMock()).drain(connection)

    assert result.state is DrainState.FAILED
    assert result.attempts == 1


def test_cancelled_drain_stops_polling(connection, event):
    event.wait.return_value = True
    runner = scripted_runner([4] * 60)

    drain = LogicalReplicationDrain(runner, cancel_event=event, logger=MagicMock())
    result = drain.drain(connection)

    assert result.state is DrainState.CANCELLED
    assert drain.state is DrainState.CANCELLED
    assert len(count_queries(runner)) == 1
