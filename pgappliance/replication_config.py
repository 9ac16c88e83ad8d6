"""
repmgr configuration and .pgpass generation for streaming replication.
"""

import os
import shutil
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError
from .models import ClusterNode
from .utils.logger import setup_logger

REPMGR_CONFIG = Path("/etc/repmgr.conf")
PGPASS_FILE = Path("/var/lib/pgsql/.pgpass")
REPMGR_LOGFILE = "/var/log/repmgr/repmgrd.log"
REPLICATION_DATABASE = "replication"
PGPASS_MODE = 0o600


def build_conninfo(node: ClusterNode, node_host: str) -> str:
    return f"host={node_host} user={node.database_user} dbname={node.database_name}"


def render_config(node: ClusterNode, node_host: str) -> str:
    """
    Render the repmgr configuration document.

    Pure function of its inputs; the output is compared across nodes.
    """
    if not node.cluster_name:
        raise ConfigurationError("Cluster name is required to render the repmgr configuration")

    lines = [
        f"cluster={node.cluster_name}",
        f"node={node.node_number}",
        f"node_name={node_host}",
        f"conninfo='{build_conninfo(node, node_host)}'",
        "use_replication_slots=1",
        "pg_basebackup_options='--xlog-method=stream'",
        "failover=automatic",
        "promote_command='repmgr standby promote'",
        "follow_command='repmgr standby follow'",
        f"logfile={REPMGR_LOGFILE}",
    ]
    return "\n".join(lines) + "\n"


def render_pgpass(node: ClusterNode) -> str:
    if node.database_password is None:
        raise ConfigurationError("Database password is required to write the credentials file")

    lines: List[str] = [
        f"*:*:{database}:{node.database_user}:{node.database_password}"
        for database in (node.database_name, REPLICATION_DATABASE)
    ]
    return "\n".join(lines) + "\n"


class ReplicationConfigBuilder:
    """Writes the repmgr configuration and the replication credentials file."""

    def __init__(
        self,
        config_path: Path = REPMGR_CONFIG,
        pgpass_path: Path = PGPASS_FILE,
        service_user: str = "postgres",
        logger=None
    ):
        self.config_path = Path(config_path)
        self.pgpass_path = Path(pgpass_path)
        self.service_user = service_user
        self.logger = logger or setup_logger(__name__)

    @classmethod
    def from_settings(cls, settings, logger=None) -> "ReplicationConfigBuilder":
        return cls(
            config_path=settings.repmgr_config,
            pgpass_path=settings.pgpass_file,
            service_user=settings.service_user,
            logger=logger
        )

    def render_config(self, node: ClusterNode, node_host: str) -> str:
        return render_config(node, node_host)

    def create_config_file(self, node: ClusterNode, node_host: str) -> bool:
        """Write the repmgr configuration for this node."""
        contents = render_config(node, node_host)
        with open(self.config_path, 'w') as f:
            f.write(contents)
            shutil.chown(self.config_path, self.service_user, self.service_user)
        self.logger.info(f"Wrote repmgr configuration to {self.config_path}")
        return True

    def write_credentials_file(self, node: ClusterNode, path: Optional[Path] = None) -> Path:
        """
        Write the .pgpass file for the application and replication databases.

        The file is mode 0600 and owned by the database service account.

        Args:
            node: Cluster node carrying the database credentials
            path: Override of the configured .pgpass location

        Returns:
            Path of the written file
        """
        path = Path(path or self.pgpass_path)
        contents = render_pgpass(node)

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PGPASS_MODE)
        with os.fdopen(fd, 'w') as f:
            f.write(contents)
            # mode passed to os.open does not apply to an existing file
            os.fchmod(f.fileno(), PGPASS_MODE)
            shutil.chown(path, self.service_user, self.service_user)

        self.logger.info(f"Wrote credentials file {path} for user {node.database_user}")
        return path
