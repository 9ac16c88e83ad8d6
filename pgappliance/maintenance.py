"""
Vacuum and reindex maintenance.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .command_runner import SWITCH, CommandOutcome, CommandRunner, FlagArg, Valued
from .errors import ConfigurationError, ExternalCommandError
from .models import ConnectionParams
from .utils.logger import setup_logger


@dataclass(frozen=True)
class GcOptions:
    analyze: bool = False
    full: bool = False
    verbose: bool = False
    table: Optional[str] = None
    reindex: bool = False


LIGHT_PRESET = GcOptions()

AGGRESSIVE_PRESET = GcOptions(analyze=True, full=True, reindex=True)


def merge_gc_options(preset: GcOptions, overrides: Optional[Mapping[str, Any]] = None) -> GcOptions:
    """
    Apply per-call overrides on top of a preset.

    Every key present in ``overrides`` wins, including False values.
    """
    overrides = dict(overrides or {})
    known = {f.name for f in fields(GcOptions)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(f"Unknown maintenance options: {', '.join(sorted(unknown))}")
    return replace(preset, **overrides)


def resolve_gc_options(aggressive: bool = False, **overrides) -> GcOptions:
    return merge_gc_options(AGGRESSIVE_PRESET if aggressive else LIGHT_PRESET, overrides)


class MaintenanceRunner:
    """Runs vacuumdb and reindexdb against one database."""

    def __init__(self, runner: CommandRunner, logger=None):
        self.runner = runner
        self.logger = logger or setup_logger(__name__)

    @staticmethod
    def _require_database(connection: ConnectionParams) -> None:
        if not connection.database:
            raise ConfigurationError("Maintenance requires a database name")

    def vacuum(self, connection: ConnectionParams, options: GcOptions) -> CommandOutcome:
        self._require_database(connection)

        args: Dict[str, FlagArg] = {}
        if options.analyze:
            args["analyze"] = SWITCH
        if options.full:
            args["full"] = SWITCH
        if options.verbose:
            args["verbose"] = SWITCH
        if options.table:
            args["table"] = Valued(options.table)
        return self.runner.run_with_connection("vacuumdb", connection, args)

    def reindex(self, connection: ConnectionParams, options: GcOptions) -> CommandOutcome:
        self._require_database(connection)

        args: Dict[str, FlagArg] = {}
        if options.table:
            args["table"] = Valued(options.table)
        return self.runner.run_with_connection("reindexdb", connection, args)

    def _log_output(self, outcome: CommandOutcome) -> None:
        output = (outcome.stdout or "") + (outcome.stderr or "")
        if output.strip():
            self.logger.info(f"Output... {output.strip()}")

    def gc(self, connection: ConnectionParams, aggressive: bool = False, **overrides) -> GcOptions:
        """
        Vacuum the database and optionally reindex it.

        Args:
            connection: Connection naming the database to maintain
            aggressive: Start from the aggressive preset instead of the light one
            **overrides: Explicit option values, which always win over the preset

        Returns:
            The options that were applied

        Raises:
            ConfigurationError: If no database name is given
            ExternalCommandError: If vacuumdb or reindexdb fails; a vacuum
                failure is raised after the requested reindex has been attempted
        """
        self._require_database(connection)
        options = resolve_gc_options(aggressive, **overrides)

        vacuum_error: Optional[ExternalCommandError] = None
        try:
            self._log_output(self.vacuum(connection, options))
        except ExternalCommandError as e:
            if not options.reindex:
                raise
            self.logger.error(f"Vacuum failed, continuing with reindex: {e}")
            vacuum_error = e

        if options.reindex:
            self._log_output(self.reindex(connection, options))

        if vacuum_error is not None:
            raise vacuum_error
        return options
