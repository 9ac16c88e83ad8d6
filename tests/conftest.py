"""Shared pytest fixtures."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from pgappliance.command_runner import CommandOutcome
from pgappliance.models import ConnectionParams
from pgappliance.utils.config import ApplianceSettings


def outcome(stdout: str = "", stderr: str = "", status: int = 0) -> CommandOutcome:
    return CommandOutcome(status, stdout, stderr)


@pytest.fixture
def connection():
    return ConnectionParams(
        host="db1",
        database="vmdb_production",
        username="root",
        password="smartvm"
    )


@pytest.fixture
def mock_logger():
    return MagicMock()


@pytest.fixture
def mock_runner():
    runner = MagicMock()
    runner.psql.return_value = outcome()
    runner.run.return_value = outcome()
    runner.run_with_connection.return_value = outcome()
    return runner


@pytest.fixture
def settings(tmp_path):
    return ApplianceSettings(
        data_directory=tmp_path / "data",
        mount_point=tmp_path / "mnt",
        template_directory=tmp_path / "templates",
        service_name="postgresql",
        package_name="postgresql-server",
        repmgr_config=tmp_path / "repmgr.conf",
        pgpass_file=tmp_path / ".pgpass",
    )
