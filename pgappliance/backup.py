"""
Physical backups with pg_basebackup.
"""

import os
from pathlib import Path

from .command_runner import SWITCH, CommandRunner, Valued
from .errors import ConfigurationError
from .models import BackupRequest
from .utils.logger import setup_logger

# pg_basebackup --format=t -z writes this name into the target directory
BASEBACKUP_OUTPUT = "base.tar.gz"


class BackupEngine:
    """Takes a cluster-wide compressed tar backup into a single archive file."""

    def __init__(self, runner: CommandRunner, logger=None):
        self.runner = runner
        self.logger = logger or setup_logger(__name__)

    def backup(self, request: BackupRequest) -> str:
        """
        Take a physical backup.

        Args:
            request: Connection and destination archive path

        Returns:
            The destination path

        Raises:
            ConfigurationError: If the destination directory does not exist
            ExternalCommandError: If pg_basebackup fails
        """
        destination = request.destination
        target_dir = destination.parent
        if not target_dir.is_dir():
            raise ConfigurationError(f"Backup directory {target_dir} does not exist")

        # pg_basebackup does not connect to a specific database
        connection = request.connection.without_database()

        self.logger.info(f"Starting physical backup to {destination}")
        self.runner.run_with_connection(
            "pg_basebackup",
            connection,
            {
                "z": SWITCH,
                "format": Valued("t"),
                "wal_method": Valued("fetch"),
                "pgdata": Valued(str(target_dir)),
            }
        )

        os.replace(target_dir / BASEBACKUP_OUTPUT, destination)
        self.logger.info(f"Backup written to {destination}")
        return str(destination)
