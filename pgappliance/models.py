"""
Value objects passed between the administration components.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class ConnectionParams:
    """Connection parameters for a single operation. The password is never shown in repr."""
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    def with_database(self, database: Optional[str]) -> "ConnectionParams":
        return replace(self, database=database)

    def without_database(self) -> "ConnectionParams":
        return replace(self, database=None)


@dataclass(frozen=True)
class BackupRequest:
    """
    Physical backup request.

    Physical backups are cluster-wide, so any database name on the
    connection is ignored.
    """
    connection: ConnectionParams
    destination: Path

    def __post_init__(self):
        object.__setattr__(self, 'destination', Path(self.destination))


@dataclass(frozen=True)
class RestoreRequest:
    """Restore of an archive into a (recreated) target database."""
    connection: ConnectionParams
    source: Path

    def __post_init__(self):
        object.__setattr__(self, 'source', Path(self.source))
        if not self.connection.database:
            raise ConfigurationError("Restore requires a target database name")

    @property
    def database(self) -> str:
        return self.connection.database


@dataclass(frozen=True)
class ClusterNode:
    """A replication cluster member as written into the repmgr configuration."""
    node_number: int
    cluster_name: Optional[str]
    database_name: str
    database_user: str
    primary_host: str
    database_password: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if isinstance(self.node_number, bool) or not isinstance(self.node_number, int) \
                or self.node_number < 1:
            raise ConfigurationError(
                f"Node number must be a positive integer, got {self.node_number!r}"
            )
        if not self.database_name:
            raise ConfigurationError("Cluster node requires a database name")
        if not self.database_user:
            raise ConfigurationError("Cluster node requires a database user")

    def with_cluster_name(self, cluster_name: str) -> "ClusterNode":
        return replace(self, cluster_name=cluster_name)
