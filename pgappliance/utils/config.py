"""
Configuration for the appliance administration tools.
Supports YAML and JSON configuration files and the appliance environment variables.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..errors import ConfigurationError

ENV_DATA_DIRECTORY = "APPLIANCE_PG_DATA"
ENV_MOUNT_POINT = "APPLIANCE_PG_MOUNT_POINT"
ENV_TEMPLATE_DIRECTORY = "APPLIANCE_TEMPLATE_DIRECTORY"
ENV_SERVICE_NAME = "APPLIANCE_PG_SERVICE"
ENV_PACKAGE_NAME = "APPLIANCE_PG_PACKAGE_NAME"


class Config:
    """Configuration file wrapper with dot-notation access."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to configuration file (YAML or JSON)
        """
        self._config: Dict[str, Any] = {}
        if config_file and config_file.exists():
            self.load_from_file(config_file)

    def load_from_file(self, config_file: Path) -> None:
        suffix = config_file.suffix.lower()
        with open(config_file, 'r') as f:
            if suffix in ['.yaml', '.yml']:
                self._config = yaml.safe_load(f) or {}
            elif suffix == '.json':
                self._config = json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {suffix}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g. 'appliance.drain_interval')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._config
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        keys = key.split('.')
        config = self._config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return self._config.copy()


@dataclass(frozen=True)
class ApplianceSettings:
    """Appliance layout and tunables, resolved once and passed to constructors."""
    data_directory: Path
    mount_point: Path
    template_directory: Path
    service_name: str
    package_name: str
    service_user: str = "postgres"
    admin_database: str = "postgres"
    default_owner: str = "root"
    repmgr_config: Path = Path("/etc/repmgr.conf")
    pgpass_file: Path = Path("/var/lib/pgsql/.pgpass")
    drain_max_attempts: int = 60
    drain_interval: float = 5.0

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        config: Optional[Config] = None,
        env_file: Optional[Path] = None
    ) -> "ApplianceSettings":
        """
        Build settings from the appliance environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            config: Optional config whose 'appliance.*' keys override the defaults
            env_file: Optional dotenv file loaded into os.environ first

        Raises:
            ConfigurationError: If a required variable is missing
        """
        if env_file:
            load_dotenv(env_file)
        if environ is None:
            environ = os.environ
        config = config or Config()

        def required(name: str) -> str:
            value = environ.get(name)
            if not value:
                raise ConfigurationError(f"Environment variable {name} is not set")
            return value

        overrides: Dict[str, Any] = {}
        for key in ('service_user', 'admin_database', 'default_owner'):
            value = config.get(f'appliance.{key}')
            if value is not None:
                overrides[key] = str(value)
        for key in ('repmgr_config', 'pgpass_file'):
            value = config.get(f'appliance.{key}')
            if value is not None:
                overrides[key] = Path(value)
        if config.get('appliance.drain_max_attempts') is not None:
            overrides['drain_max_attempts'] = int(config.get('appliance.drain_max_attempts'))
        if config.get('appliance.drain_interval') is not None:
            overrides['drain_interval'] = float(config.get('appliance.drain_interval'))

        return cls(
            data_directory=Path(required(ENV_DATA_DIRECTORY)),
            mount_point=Path(required(ENV_MOUNT_POINT)),
            template_directory=Path(required(ENV_TEMPLATE_DIRECTORY)),
            service_name=required(ENV_SERVICE_NAME),
            package_name=required(ENV_PACKAGE_NAME),
            **overrides
        )
