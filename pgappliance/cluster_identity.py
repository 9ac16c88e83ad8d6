"""
Replication cluster naming.
The cluster name is derived from the region encoded in the database id sequence.
"""

import psycopg2
from psycopg2 import sql

from .errors import DatabaseConnectionError, PgApplianceError
from .models import ConnectionParams
from .utils.logger import setup_logger

# Ids are allocated in blocks of one trillion per region
REGION_SEQUENCE_FACTOR = 1_000_000_000_000
DEFAULT_SEQUENCE = "miq_databases_id_seq"
CLUSTER_NAME_FORMAT = "miq_region_{region}_cluster"


def region_number(last_value) -> int:
    return int(last_value) // REGION_SEQUENCE_FACTOR


def cluster_name_for(last_value) -> str:
    """Format the cluster name for a sequence value; same value, same name."""
    return CLUSTER_NAME_FORMAT.format(region=region_number(last_value))


class ClusterIdentity:
    """Reads the region sequence and derives the cluster name."""

    def __init__(
        self,
        connection: ConnectionParams,
        sequence: str = DEFAULT_SEQUENCE,
        connect_timeout: int = 5,
        logger=None
    ):
        """
        Initialize cluster identity lookup.

        Args:
            connection: Connection to the application database
            sequence: Sequence whose last_value encodes the region
            connect_timeout: Connection timeout in seconds
            logger: Logger instance (optional)
        """
        self.connection = connection
        self.sequence = sequence
        self.connect_timeout = connect_timeout
        self.logger = logger or setup_logger(__name__)

    def _connect(self):
        params = self.connection
        return psycopg2.connect(
            host=params.host,
            port=params.port,
            dbname=params.database,
            user=params.username,
            password=params.password,
            connect_timeout=self.connect_timeout
        )

    def fetch_last_value(self) -> int:
        try:
            conn = self._connect()
        except psycopg2.OperationalError as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database on {self.connection.host or 'localhost'}: {e}",
                host=self.connection.host
            ) from e

        try:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT last_value FROM {}").format(
                        sql.Identifier(self.sequence)
                    )
                )
                row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            raise PgApplianceError(f"Sequence {self.sequence} returned no rows")
        return int(row[0])

    def generate_cluster_name(self) -> str:
        """
        Generate the cluster name.

        Raises:
            DatabaseConnectionError: If the database cannot be reached
        """
        name = cluster_name_for(self.fetch_last_value())
        self.logger.info(f"Generated cluster name: {name}")
        return name
