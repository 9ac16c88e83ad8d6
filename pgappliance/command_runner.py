"""
Invocation of the PostgreSQL command-line tools.
Builds argument lists, injects credentials through the environment and
captures output.
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .errors import ExternalCommandError
from .models import ConnectionParams
from .utils.logger import setup_logger

REDACTED = "<redacted>"
SENSITIVE_ENV = ("PGPASSWORD",)
SENSITIVE_FLAGS = ("password",)


@dataclass(frozen=True)
class Switch:
    """A bare flag such as ``--verbose``."""


@dataclass(frozen=True)
class Valued:
    """A flag carrying a value, rendered as ``--name=value``."""
    value: str


FlagArg = Union[Switch, Valued]

SWITCH = Switch()


@dataclass(frozen=True)
class CommandOutcome:
    """Fully captured result of an external invocation."""
    exit_status: int
    stdout: str
    stderr: str


def render_flag(name: str, arg: FlagArg, redact: bool = False) -> List[str]:
    """
    Render one flag.

    Single-letter names use the short form (``-z``, ``-F value``); longer
    names have underscores turned into dashes (``wal_method`` -> ``--wal-method``).
    """
    option = f"-{name}" if len(name) == 1 else "--" + name.replace('_', '-')
    if isinstance(arg, Switch):
        return [option]
    if not isinstance(arg, Valued):
        raise TypeError(f"Flag {name!r} must be Switch or Valued, got {type(arg).__name__}")

    value = REDACTED if redact and name in SENSITIVE_FLAGS else str(arg.value)
    if len(name) == 1:
        return [option, value]
    return [f"{option}={value}"]


def build_argv(
    command_name: str,
    positional_args: Sequence[str] = (),
    flag_args: Optional[Mapping[str, FlagArg]] = None,
    redact: bool = False
) -> List[str]:
    """Build the argument vector: command, flags in insertion order, then positionals."""
    argv = [command_name]
    for name, arg in (flag_args or {}).items():
        argv.extend(render_flag(name, arg, redact=redact))
    argv.extend(str(p) for p in positional_args)
    return argv


def credential_env(connection: ConnectionParams) -> Dict[str, str]:
    env = {}
    if connection.username:
        env["PGUSER"] = connection.username
    if connection.password:
        env["PGPASSWORD"] = connection.password
    return env


class CommandRunner:
    """Runs PostgreSQL client binaries and maps failures to ExternalCommandError."""

    def __init__(self, logger=None):
        self.logger = logger or setup_logger(__name__)

    def run(
        self,
        command_name: str,
        positional_args: Sequence[str] = (),
        flag_args: Optional[Mapping[str, FlagArg]] = None,
        env_overrides: Optional[Mapping[str, str]] = None
    ) -> CommandOutcome:
        """
        Run an external command and capture its output.

        Args:
            command_name: Binary name, resolved through PATH
            positional_args: Arguments appended after the flags
            flag_args: Flags as name -> Switch/Valued
            env_overrides: Variables added to this invocation's environment only

        Returns:
            CommandOutcome with exit status, stdout and stderr

        Raises:
            ExternalCommandError: If the command is missing or exits non-zero
        """
        argv = build_argv(command_name, positional_args, flag_args)
        env_overrides = dict(env_overrides or {})
        display = shlex.join(build_argv(command_name, positional_args, flag_args, redact=True))

        self.logger.info(f"Running command... {display}")
        if env_overrides:
            shown = {
                k: (REDACTED if k in SENSITIVE_ENV else v)
                for k, v in sorted(env_overrides.items())
            }
            self.logger.debug(f"Environment overrides: {shown}")

        env = os.environ.copy()
        env.update(env_overrides)

        try:
            result = subprocess.run(
                argv,
                env=env,
                capture_output=True,
                text=True,
                check=False
            )
        except FileNotFoundError as e:
            raise ExternalCommandError(display, 127, str(e)) from e

        if result.returncode != 0:
            self.logger.debug(f"{command_name} failed with code {result.returncode}: {result.stderr.strip()}")
            raise ExternalCommandError(display, result.returncode, result.stderr, result.stdout)

        return CommandOutcome(result.returncode, result.stdout, result.stderr)

    def run_with_connection(
        self,
        command_name: str,
        connection: ConnectionParams,
        flag_args: Optional[Mapping[str, FlagArg]] = None,
        positional_args: Sequence[str] = ()
    ) -> CommandOutcome:
        """
        Run a client tool against a connection.

        Adds ``--no-password`` plus ``--dbname``/``--host``/``--port`` when set;
        explicit ``flag_args`` win over those defaults. The user name and
        password travel as PGUSER/PGPASSWORD, never on the command line.
        """
        flags: Dict[str, FlagArg] = {"no_password": SWITCH}
        if connection.database:
            flags["dbname"] = Valued(connection.database)
        if connection.host:
            flags["host"] = Valued(connection.host)
        if connection.port:
            flags["port"] = Valued(str(connection.port))
        flags.update(flag_args or {})

        return self.run(command_name, positional_args, flags, credential_env(connection))

    def psql(self, connection: ConnectionParams, sql: str) -> CommandOutcome:
        """Run a single SQL command through psql."""
        return self.run_with_connection("psql", connection, {"command": Valued(sql)})
