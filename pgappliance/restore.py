"""
Restore of an archive into a freshly recreated database.
"""

from typing import Optional

from .command_runner import SWITCH, CommandRunner
from .drain import LogicalReplicationDrain
from .models import ConnectionParams, RestoreRequest
from .utils.logger import setup_logger

ADMIN_DATABASE = "postgres"
DEFAULT_OWNER = "root"


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class RestoreEngine:
    """Drains pglogical, recreates the target database and loads the archive with pg_restore."""

    def __init__(
        self,
        runner: CommandRunner,
        drain: Optional[LogicalReplicationDrain] = None,
        admin_database: str = ADMIN_DATABASE,
        default_owner: str = DEFAULT_OWNER,
        logger=None
    ):
        self.runner = runner
        self.logger = logger or setup_logger(__name__)
        self.drain = drain if drain is not None else LogicalReplicationDrain(runner, logger=self.logger)
        self.admin_database = admin_database
        self.default_owner = default_owner

    def recreate_db(self, connection: ConnectionParams) -> None:
        """Drop and create the connection's database. Destroys all of its contents."""
        dbname = quote_ident(connection.database)
        owner = quote_ident(connection.username or self.default_owner)
        admin = connection.with_database(self.admin_database)

        self.logger.info(f"Recreating database {connection.database}")
        self.runner.psql(admin, f"DROP DATABASE IF EXISTS {dbname}")
        self.runner.psql(admin, f"CREATE DATABASE {dbname} WITH OWNER = {owner} ENCODING = 'UTF8'")

    def restore(self, request: RestoreRequest) -> str:
        """
        Restore an archive into the request's database.

        Args:
            request: Target connection and source archive

        Returns:
            The source archive path

        Raises:
            ExternalCommandError: If recreating the database or pg_restore fails
        """
        connection = request.connection

        result = self.drain.drain(connection)
        self.logger.info(f"pglogical drain finished: {result.state.value}")

        self.recreate_db(connection)

        # pg_restore keeps going past errors unless --exit-on-error is given
        self.runner.run_with_connection(
            "pg_restore",
            connection,
            {"verbose": SWITCH},
            positional_args=[str(request.source)]
        )
        self.logger.info(f"Restored {request.source} into {connection.database}")
        return str(request.source)
