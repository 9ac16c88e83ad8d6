"""Tests for the command line interface."""

import subprocess
from unittest.mock import patch

import pytest

from pgappliance.cli import ApplianceCLI
from tests.test_config import APPLIANCE_ENV


@pytest.fixture
def appliance_env(monkeypatch):
    for name, value in APPLIANCE_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("PGPASSWORD", "smartvm")


def test_status(appliance_env, capsys):
    with patch('pgappliance.cli.PostgresAdmin') as mock_admin:
        mock_admin.return_value.local_server_status.return_value = "running (primary)"
        assert ApplianceCLI().run(["status"]) == 0

    assert capsys.readouterr().out.strip() == "running (primary)"


def test_gc_passes_explicit_overrides(appliance_env):
    with patch('pgappliance.cli.PostgresAdmin') as mock_admin:
        code = ApplianceCLI().run(["gc", "--dbname", "vmdb", "--aggressive", "--no-reindex"])

    assert code == 0
    conn = mock_admin.return_value.gc.call_args[0][0]
    assert conn.database == "vmdb"
    assert conn.password == "smartvm"
    assert mock_admin.return_value.gc.call_args[1] == {"aggressive": True, "reindex": False}


def test_gc_without_flags_uses_preset(appliance_env):
    with patch('pgappliance.cli.PostgresAdmin') as mock_admin:
        ApplianceCLI().run(["gc", "--dbname", "vmdb"])

    assert mock_admin.return_value.gc.call_args[1] == {"aggressive": False}


def test_restore(appliance_env, capsys):
    with patch('pgappliance.cli.PostgresAdmin') as mock_admin:
        mock_admin.return_value.restore.return_value = "/tmp/db.dump"
        assert ApplianceCLI().run(["restore", "--dbname", "vmdb", "/tmp/db.dump"]) == 0

    request = mock_admin.return_value.restore.call_args[0][0]
    assert request.database == "vmdb"
    assert str(request.source) == "/tmp/db.dump"


def test_missing_environment_fails(monkeypatch, capsys):
    for name in APPLIANCE_ENV:
        monkeypatch.delenv(name, raising=False)

    assert ApplianceCLI().run(["status"]) == 1
    assert "APPLIANCE_PG_DATA" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert ApplianceCLI().run([]) == 1
    assert "usage" in capsys.readouterr().out


def test_backup_drops_database_name(appliance_env, tmp_path, capsys):
    destination = tmp_path / "db.tar.gz"

    def fake_basebackup(argv, **kwargs):
        (tmp_path / "base.tar.gz").write_bytes(b"archive")
        return subprocess.CompletedProcess(argv, 0, "", "")

    with patch('pgappliance.command_runner.subprocess.run', side_effect=fake_basebackup) as mock_run:
        code = ApplianceCLI().run(
            ["backup", "--host", "db1", "--dbname", "vmdb", "--username", "root", str(destination)]
        )

    assert code == 0
    assert capsys.readouterr().out.strip() == str(destination)
    argv = mock_run.call_args[0][0]
    assert argv[0] == "pg_basebackup"
    assert not any(a.startswith("--dbname") for a in argv)
    assert "vmdb" not in argv
    assert not any(a.startswith("--username") for a in argv)
    assert destination.read_bytes() == b"archive"


def test_repmgr_config_passes_node_details(appliance_env, capsys):
    with patch('pgappliance.cli.ReplicationBootstrap') as mock_bootstrap:
        mock_bootstrap.return_value.configure.side_effect = lambda node, host: node
        code = ApplianceCLI().run([
            "repmgr-config", "--dbname", "vmdb", "--username", "root",
            "--node-number", "2", "--node-host", "10.0.0.6",
            "--primary-host", "10.0.0.5", "--cluster-name", "miq_region_1_cluster",
        ])

    assert code == 0
    node, host = mock_bootstrap.return_value.configure.call_args[0]
    assert host == "10.0.0.6"
    assert node.node_number == 2
    assert node.cluster_name == "miq_region_1_cluster"
    assert node.database_name == "vmdb"
    assert node.database_user == "root"
    assert node.primary_host == "10.0.0.5"
    assert node.database_password == "smartvm"
    assert capsys.readouterr().out.strip() == "miq_region_1_cluster"


def test_repmgr_config_without_password_writes_nothing(appliance_env, monkeypatch, tmp_path):
    monkeypatch.delenv("PGPASSWORD")
    config = tmp_path / "pgappliance.yaml"
    config.write_text(
        f"appliance:\n  repmgr_config: {tmp_path / 'repmgr.conf'}\n  pgpass_file: {tmp_path / '.pgpass'}\n"
    )

    code = ApplianceCLI().run([
        "--config", str(config),
        "repmgr-config", "--dbname", "vmdb", "--username", "root",
        "--node-number", "1", "--node-host", "10.0.0.5",
        "--primary-host", "10.0.0.5", "--cluster-name", "miq_region_1_cluster",
    ])

    assert code == 1
    assert not (tmp_path / "repmgr.conf").exists()
    assert not (tmp_path / ".pgpass").exists()
