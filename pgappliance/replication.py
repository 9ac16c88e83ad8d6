"""
Streaming replication bootstrap for a primary or standby node.
"""

from .cluster_identity import ClusterIdentity
from .errors import ConfigurationError
from .models import ClusterNode
from .replication_config import ReplicationConfigBuilder
from .utils.logger import setup_logger


class ReplicationBootstrap:
    """Names the cluster and writes the node's repmgr and credentials files."""

    def __init__(self, identity: ClusterIdentity, builder: ReplicationConfigBuilder, logger=None):
        self.identity = identity
        self.builder = builder
        self.logger = logger or setup_logger(__name__)

    def configure(self, node: ClusterNode, node_host: str) -> ClusterNode:
        """
        Configure replication files for a node.

        Args:
            node: Node description collected from the operator
            node_host: Address other nodes use to reach this node

        Returns:
            The node, with its cluster name filled in

        Raises:
            ConfigurationError: If the node carries no database password
            DatabaseConnectionError: If the cluster name must be generated and
                the database is unreachable
        """
        if node.database_password is None:
            raise ConfigurationError("Database password is required to configure replication")

        if not node.cluster_name:
            node = node.with_cluster_name(self.identity.generate_cluster_name())

        self.logger.info(
            f"Configuring replication node {node.node_number} of cluster {node.cluster_name}"
        )
        self.builder.create_config_file(node, node_host)
        self.builder.write_credentials_file(node)
        return node
