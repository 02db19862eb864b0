"""Tests for the command line entry point."""

import sys

import pytest

from gtbare.main import main
from tests.conftest import free_port_block

CLUSTER_YAML = """
cluster:
  name: cli
  meta:
    replicas: 1
    httpAddr: 127.0.0.1:{port}
  frontend:
    replicas: 2
    httpAddr: 127.0.0.1:{fe_port}
    userProvider: static_user_provider:cmd:u=p
"""


@pytest.fixture
def cluster_file(tmp_path, monkeypatch):
    monkeypatch.setattr("gtbare.settings.GTBARE_HOME", tmp_path / "home")
    monkeypatch.setattr("gtbare.settings.VERBOSE_LOGGING", False)

    def write(port=14001, fe_port=4000):
        path = tmp_path / "cluster.yaml"
        path.write_text(CLUSTER_YAML.format(port=port, fe_port=fe_port))
        return path

    return write


def test_check_config_prints_every_replica_command(cluster_file, capsys):
    assert main(["check-config", "--config", str(cluster_file())]) == 0

    out = capsys.readouterr().out
    assert "metasrv.0: greptime --log-level=info metasrv start" in out
    assert "--http-addr=127.0.0.1:4001" in out
    assert "--user-provider=static_user_provider:cmd:u=p" in out


def test_check_config_reports_invalid_files(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("cluster:\n  meta:\n    replicas: -3\n")
    assert main(["check-config", f"--config={path}"]) == 1


def test_status_of_a_stopped_cluster(cluster_file, capsys):
    port = free_port_block(3)
    assert main(["status", "--config", str(cluster_file(port, port + 1))]) == 1
    out = capsys.readouterr().out
    assert "metasrv    NOT RUNNING replica 0" in out
    assert "frontend   NOT RUNNING replica 0" in out


def test_status_of_a_healthy_cluster(cluster_file, health_servers, capsys):
    port, _ = health_servers(200, 200, 200)
    assert main(["status", "--config", str(cluster_file(port, port + 1)), "--verbose"]) == 0
    assert "metasrv    RUNNING" in capsys.readouterr().out


def test_missing_config_file_exits_with_config_error(tmp_path):
    assert main(["status", "--config", str(tmp_path / "absent.yaml")]) == 2


def test_option_without_value_is_a_config_error():
    assert main(["status", "--config"]) == 2


def test_unknown_command_and_help(capsys):
    assert main(["frobnicate"]) == 1
    assert main(["help"]) == 0
    assert "check-config" in capsys.readouterr().out
    assert main([]) == 1


def test_check_config_rejects_a_numeric_address(tmp_path):
    path = tmp_path / "numeric.yaml"
    path.write_text("cluster:\n  frontend:\n    httpAddr: 4000\n")
    assert main(["check-config", "--config", str(path)]) == 1


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX executables and signals")
def test_start_runs_until_the_timeout_then_cleans_up(cluster_file, fake_binary, tmp_path):
    port = free_port_block(3)
    path = cluster_file(port, port + 1)

    assert main(["start", "--config", str(path), "--binary", fake_binary, "--timeout", "3"]) == 0
    assert not (tmp_path / "home" / "cli" / "logs" / "metasrv.0").exists()


@pytest.mark.parametrize("value", ["soon", "0"])
def test_start_rejects_a_bad_timeout(cluster_file, value):
    assert main(["start", "--config", str(cluster_file()), "--timeout", value]) == 2
