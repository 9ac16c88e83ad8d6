#!/usr/bin/env python3
"""
PostgreSQL appliance administration CLI.
Status, backup, restore, maintenance and replication configuration.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from .admin import PostgresAdmin
from .cluster_identity import ClusterIdentity
from .models import BackupRequest, ClusterNode, ConnectionParams, RestoreRequest
from .replication import ReplicationBootstrap
from .replication_config import ReplicationConfigBuilder
from .utils.config import ApplianceSettings, Config
from .utils.logger import setup_logger


class ApplianceCLI:
    """Command line interface for appliance database administration."""

    def __init__(self):
        self.logger = None
        self.config = None
        self.settings = None

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description='PostgreSQL appliance administration',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Show local server status
  %(prog)s status

  # Take a physical backup
  %(prog)s backup --host db1 --username root /var/backups/db.tar.gz

  # Restore into a recreated database
  %(prog)s restore --dbname vmdb_production /var/backups/db.dump

  # Aggressive vacuum without reindex
  %(prog)s gc --dbname vmdb_production --aggressive --no-reindex
            """
        )

        parser.add_argument('--config', type=Path, help='Configuration file path (YAML or JSON)')
        parser.add_argument('--env-file', type=Path, help='dotenv file with APPLIANCE_* variables')
        parser.add_argument('--log-file', type=Path, help='Also log to this file')
        parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output')

        connection = argparse.ArgumentParser(add_help=False)
        group = connection.add_argument_group('Connection Options')
        group.add_argument('--host', help='Database host')
        group.add_argument('--port', type=int, help='Database port')
        group.add_argument('--dbname', help='Database name')
        group.add_argument('--username', help='Database user (password is read from PGPASSWORD)')

        subparsers = parser.add_subparsers(dest='command', help='Command to run')

        subparsers.add_parser('status', help='Show local server status')

        backup = subparsers.add_parser('backup', parents=[connection], help='Take a physical backup')
        backup.add_argument('destination', type=Path, help='Archive file to write')

        restore = subparsers.add_parser('restore', parents=[connection],
                                        help='Recreate a database and restore an archive into it')
        restore.add_argument('source', type=Path, help='Archive file to restore')

        gc = subparsers.add_parser('gc', parents=[connection], help='Vacuum and reindex a database')
        gc.add_argument('--aggressive', action='store_true', help='Full vacuum, analyze and reindex')
        gc.add_argument('--table', help='Limit maintenance to one table')
        gc.add_argument('--reindex', dest='reindex', action='store_true', default=None,
                        help='Force a reindex')
        gc.add_argument('--no-reindex', dest='reindex', action='store_false',
                        help='Skip the reindex')
        gc.add_argument('--full', dest='full', action='store_true', default=None,
                        help='Force a full vacuum')

        subparsers.add_parser('db-size', parents=[connection], help='Show database size in bytes')

        repmgr = subparsers.add_parser('repmgr-config', parents=[connection],
                                       help='Write repmgr.conf and .pgpass for this node')
        repmgr.add_argument('--node-number', type=int, required=True, help='Unique node number')
        repmgr.add_argument('--node-host', required=True, help='Address of this node')
        repmgr.add_argument('--primary-host', required=True, help='Primary database host')
        repmgr.add_argument('--cluster-name', help='Cluster name (generated when omitted)')

        return parser

    def load_config(self, args: argparse.Namespace) -> None:
        self.config = Config(args.config) if args.config else Config()
        self.settings = ApplianceSettings.from_env(config=self.config, env_file=args.env_file)

    def setup_logging(self, args: argparse.Namespace) -> None:
        log_file = args.log_file or self.config.get('log_file')
        self.logger = setup_logger(
            'pgappliance',
            log_file=Path(log_file) if log_file else None,
            verbose=args.verbose
        )

    @staticmethod
    def connection_from_args(args: argparse.Namespace) -> ConnectionParams:
        return ConnectionParams(
            host=args.host,
            port=args.port,
            database=args.dbname,
            username=args.username,
            password=os.environ.get('PGPASSWORD')
        )

    def configure_replication(self, args: argparse.Namespace) -> ClusterNode:
        connection = self.connection_from_args(args)
        node = ClusterNode(
            node_number=args.node_number,
            cluster_name=args.cluster_name,
            database_name=args.dbname,
            database_user=args.username,
            primary_host=args.primary_host,
            database_password=connection.password
        )
        bootstrap = ReplicationBootstrap(
            ClusterIdentity(connection, logger=self.logger),
            ReplicationConfigBuilder.from_settings(self.settings, logger=self.logger),
            logger=self.logger
        )
        return bootstrap.configure(node, args.node_host)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point."""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 1

        try:
            self.load_config(args)
            self.setup_logging(args)
            admin = PostgresAdmin(self.settings, logger=self.logger)

            if args.command == 'status':
                print(admin.local_server_status())
            elif args.command == 'backup':
                request = BackupRequest(self.connection_from_args(args), args.destination)
                print(admin.backup(request))
            elif args.command == 'restore':
                request = RestoreRequest(self.connection_from_args(args), args.source)
                print(admin.restore(request))
            elif args.command == 'gc':
                overrides = {}
                for key in ('table', 'reindex', 'full'):
                    value = getattr(args, key)
                    if value is not None:
                        overrides[key] = value
                admin.gc(self.connection_from_args(args), aggressive=args.aggressive, **overrides)
            elif args.command == 'db-size':
                print(admin.database_size(self.connection_from_args(args)))
            elif args.command == 'repmgr-config':
                node = self.configure_replication(args)
                print(node.cluster_name)
            else:
                self.logger.error(f"Unknown command: {args.command}")
                return 1

            return 0
        except KeyboardInterrupt:
            if self.logger:
                self.logger.info("Interrupted by user")
            return 130
        except Exception as e:
            if self.logger:
                self.logger.error(f"Error: {e}", exc_info=args.verbose)
            else:
                print(f"Error: {e}", file=sys.stderr)
            return 1


def main():
    """Entry point for command line execution."""
    cli = ApplianceCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
