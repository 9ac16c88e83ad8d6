"""
Error types raised by the appliance administration components.
"""

from typing import Optional


class PgApplianceError(Exception):
    """Base class for all appliance administration errors."""


class ExternalCommandError(PgApplianceError):
    """An external database tool exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = "", stdout: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        message = f"Command failed: {command} (exit code {exit_code})"
        if stderr:
            message += f"\nStderr: {stderr.strip()}"
        super().__init__(message)


class ConfigurationError(PgApplianceError, ValueError):
    """A required parameter or setting is missing or invalid."""


class DatabaseConnectionError(PgApplianceError, ConnectionError):
    """The database could not be reached."""

    def __init__(self, message: str, host: Optional[str] = None):
        self.host = host
        super().__init__(message)
