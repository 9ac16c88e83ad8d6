"""
PostgreSQL appliance administration.
Backup/restore, maintenance and replication bootstrap for an embedded PostgreSQL.
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    ExternalCommandError,
    PgApplianceError,
)
from .models import BackupRequest, ClusterNode, ConnectionParams, RestoreRequest
