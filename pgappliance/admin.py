"""
PostgreSQL appliance administration.
Locates the server's directories, reports status and fronts the backup,
restore and maintenance engines.
"""

import re
import shutil
from pathlib import Path
from typing import Optional

from .backup import BackupEngine
from .command_runner import SWITCH, CommandRunner
from .drain import LogicalReplicationDrain
from .errors import ConfigurationError, ExternalCommandError, PgApplianceError
from .maintenance import GcOptions, MaintenanceRunner
from .models import BackupRequest, ConnectionParams, RestoreRequest
from .restore import RestoreEngine
from .utils.config import ApplianceSettings
from .utils.logger import setup_logger

LOGICAL_VOLUME_NAME = "lv_pg"
VOLUME_GROUP_NAME = "vg_data"
DATABASE_DISK_FILESYSTEM = "xfs"
RECOVERY_MARKERS = ("recovery.conf", "standby.signal")

DATABASE_SIZE_PATTERN = re.compile(r'^\s+([0-9]+)\s*$', re.MULTILINE)


class PostgresAdmin:
    """Administration entry point for the appliance's PostgreSQL server."""

    def __init__(self, settings: ApplianceSettings, runner: Optional[CommandRunner] = None, logger=None):
        """
        Initialize admin.

        Args:
            settings: Appliance layout and tunables
            runner: Command runner (optional)
            logger: Logger instance (optional)
        """
        self.settings = settings
        self.logger = logger or setup_logger(__name__)
        self.runner = runner if runner is not None else CommandRunner(logger=self.logger)

        self.drain = LogicalReplicationDrain(
            self.runner,
            max_attempts=settings.drain_max_attempts,
            interval=settings.drain_interval,
            logger=self.logger
        )
        self.backup_engine = BackupEngine(self.runner, logger=self.logger)
        self.restore_engine = RestoreEngine(
            self.runner,
            drain=self.drain,
            admin_database=settings.admin_database,
            default_owner=settings.default_owner,
            logger=self.logger
        )
        self.maintenance = MaintenanceRunner(self.runner, logger=self.logger)

    @property
    def data_directory(self) -> Path:
        return self.settings.data_directory

    @property
    def mount_point(self) -> Path:
        return self.settings.mount_point

    @property
    def template_directory(self) -> Path:
        return self.settings.template_directory

    @property
    def service_name(self) -> str:
        return self.settings.service_name

    @property
    def package_name(self) -> str:
        return self.settings.package_name

    @property
    def user(self) -> str:
        """Unprivileged account that runs postgresql."""
        return self.settings.service_user

    @property
    def logical_volume_path(self) -> Path:
        return Path("/dev") / VOLUME_GROUP_NAME / LOGICAL_VOLUME_NAME

    @property
    def database_disk_filesystem(self) -> str:
        return DATABASE_DISK_FILESYSTEM

    def initialized(self) -> bool:
        directory = self.data_directory
        return directory.is_dir() and any(directory.iterdir())

    def service_running(self) -> bool:
        try:
            self.runner.run("systemctl", ["is-active", self.service_name], {"quiet": SWITCH})
        except ExternalCommandError:
            return False
        return True

    def local_server_in_recovery(self) -> bool:
        return any((self.data_directory / marker).exists() for marker in RECOVERY_MARKERS)

    def local_server_status(self) -> str:
        if self.service_running():
            return f"running ({'standby' if self.local_server_in_recovery() else 'primary'})"
        elif self.initialized():
            return "initialized and stopped"
        else:
            return "not initialized"

    def database_size(self, connection: ConnectionParams) -> int:
        """Size of the connection's database in bytes."""
        if not connection.database:
            raise ConfigurationError("Database size requires a database name")

        literal = connection.database.replace("'", "''")
        outcome = self.runner.psql(connection, f"SELECT pg_database_size('{literal}');")
        match = DATABASE_SIZE_PATTERN.search(outcome.stdout)
        if not match:
            raise PgApplianceError(f"Could not parse database size from psql output: {outcome.stdout!r}")
        return int(match.group(1))

    def prep_data_directory(self) -> None:
        """
        Make the data directory ready for initdb.

        initdb fails unless the directory is empty and owned by the service account.
        """
        directory = self.data_directory
        directory.mkdir(exist_ok=True)
        shutil.chown(directory, self.user, self.user)
        for child in directory.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        self.logger.info(f"Prepared data directory {directory}")

    def backup(self, request: BackupRequest) -> str:
        return self.backup_engine.backup(request)

    def restore(self, request: RestoreRequest) -> str:
        return self.restore_engine.restore(request)

    def gc(self, connection: ConnectionParams, aggressive: bool = False, **overrides) -> GcOptions:
        return self.maintenance.gc(connection, aggressive=aggressive, **overrides)
