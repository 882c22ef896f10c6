"""Tests for the bitbucket-scm CLI commands."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from bitbucket_scm.cli import app
from bitbucket_scm.client.errors import NotFoundError
from bitbucket_scm.client.models import DirectoryEntry

from conftest import BASE_URL, SERVER_ID

runner = CliRunner()

CONFIG_YAML = f"""\
servers:
  - id: {SERVER_ID}
    name: Bitbucket
    base_url: {BASE_URL}
log_level: error
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    path = tmp_path / "cfg.yaml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture
def remote(client_factory):
    with patch("bitbucket_scm.cli.HttpClientFactory", return_value=client_factory):
        yield client_factory


def _invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["-c", str(config_file), *args])


# ── config / servers ────────────────────────────────────────────────


def test_missing_config_file(tmp_path: Path):
    result = runner.invoke(app, ["-c", str(tmp_path / "nope.yaml"), "servers"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_servers_lists_configured_server(config_file: Path):
    result = _invoke(config_file, "servers")
    assert result.exit_code == 0
    assert SERVER_ID in result.output
    assert "warning" in result.output


def test_servers_empty(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    result = runner.invoke(app, ["servers"])
    assert result.exit_code == 0
    assert "No servers configured" in result.output


def test_config_show(config_file: Path):
    result = _invoke(config_file, "config", "show")
    assert result.exit_code == 0
    assert SERVER_ID in result.output


def test_config_init_creates_file(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path / "fakehome")
    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0
    assert (tmp_path / "bitbucket-scm.yaml").is_file()

    again = runner.invoke(app, ["config", "init"])
    assert again.exit_code == 1
    assert "already exists" in again.output

    forced = runner.invoke(app, ["config", "init", "--force"])
    assert forced.exit_code == 0


# ── resolve / mirrors ───────────────────────────────────────────────


def test_resolve_success(config_file: Path, remote, mock_client):
    result = _invoke(config_file, "resolve", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1")
    assert result.exit_code == 0
    assert "resolved" in result.output
    assert "PROJECT_1/rep_1" in result.output
    mock_client.get_repository.assert_called_once_with("Project 1", "rep_1")


def test_resolve_unknown_server_is_placeholder(config_file: Path, remote):
    result = _invoke(config_file, "resolve", "-s", "NOPE", "-p", "P", "-r", "r")
    assert result.exit_code == 1
    assert "placeholder" in result.output
    assert "unknown_server" in result.output
    remote.get_client.assert_not_called()


def test_resolve_not_found(config_file: Path, remote, mock_client):
    mock_client.get_repository.side_effect = NotFoundError("get_repository", "gone")
    result = _invoke(config_file, "resolve", "-s", SERVER_ID, "-p", "P", "-r", "missing")
    assert result.exit_code == 1
    assert "not_found" in result.output


def test_mirrors_lists_available(config_file: Path, remote):
    result = _invoke(config_file, "mirrors", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1")
    assert result.exit_code == 0
    assert "mirror-eu" in result.output


def test_mirrors_unknown_server(config_file: Path, remote):
    result = _invoke(config_file, "mirrors", "-s", "NOPE", "-p", "P", "-r", "r")
    assert result.exit_code == 1
    assert "unknown server" in result.output


def test_mirrors_none_available(config_file: Path, remote, mock_client):
    mock_client.get_mirrored_repository_descriptors.return_value = []
    result = _invoke(config_file, "mirrors", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1")
    assert result.exit_code == 0
    assert "No available mirrors" in result.output


# ── ls / cat ────────────────────────────────────────────────────────


def test_ls_root(config_file: Path, remote, mock_file_client):
    mock_file_client.list_directory.return_value = [
        DirectoryEntry(path="Jenkinsfile", kind="file"),
        DirectoryEntry(path="src", kind="directory"),
    ]
    result = _invoke(
        config_file, "ls", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1",
        "--ref", "refs/heads/master",
    )
    assert result.exit_code == 0
    assert "src/" in result.output
    assert "Jenkinsfile" in result.output
    mock_file_client.list_directory.assert_called_once_with("", "refs/heads/master")


def test_ls_wildcard_ref_not_supported(config_file: Path, remote):
    result = _invoke(
        config_file, "ls", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1", "--ref", "**"
    )
    assert result.exit_code == 2
    assert "not possible" in result.output


def test_cat_prints_file(config_file: Path, remote, mock_file_client, mock_client):
    mock_file_client.get_type.return_value = "file"
    mock_file_client.read_raw.return_value = b"pipeline {}\n"
    result = _invoke(
        config_file, "cat", "Jenkinsfile", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1",
        "--ref", "refs/heads/master",
    )
    assert result.exit_code == 0
    assert "pipeline {}" in result.output
    mock_file_client.read_raw.assert_called_once_with("Jenkinsfile", "refs/heads/master")
    assert mock_client.close.called


def test_cat_missing_file(config_file: Path, remote, mock_file_client):
    mock_file_client.get_type.side_effect = NotFoundError("get_type", "gone")
    result = _invoke(
        config_file, "cat", "nope.txt", "-s", SERVER_ID, "-p", "Project 1", "-r", "rep_1",
        "--ref", "refs/heads/master",
    )
    assert result.exit_code == 1
    assert "does not exist" in result.output


# ── checkout ────────────────────────────────────────────────────────


def _fake_git(command, **kwargs):
    if command[1] == "ls-remote":
        return subprocess.CompletedProcess(command, 0, f"{'a' * 40}\trefs/heads/master\n", "")
    return subprocess.CompletedProcess(command, 0, "", "")


def test_checkout(config_file: Path, remote, tmp_path: Path):
    workspace = tmp_path / "ws"
    with patch("bitbucket_scm.git.engine.subprocess.run", side_effect=_fake_git) as mock_run:
        result = _invoke(
            config_file, "checkout", str(workspace), "-s", SERVER_ID, "-p", "Project 1",
            "-r", "rep_1",
        )
    assert result.exit_code == 0, result.output
    assert "Checkout Complete" in result.output
    assert workspace.is_dir()
    verbs = [c.args[0][1] for c in mock_run.call_args_list]
    assert verbs == ["init", "ls-remote", "fetch", "checkout"]


def test_checkout_unresolved(config_file: Path, remote, tmp_path: Path):
    result = _invoke(config_file, "checkout", str(tmp_path / "ws"), "-s", "NOPE", "-p", "P", "-r", "r")
    assert result.exit_code == 1
    assert "could not be resolved" in result.output


def test_checkout_git_failure(config_file: Path, remote, tmp_path: Path):
    failed = subprocess.CompletedProcess([], 128, "", "fatal: repository not found")
    with patch("bitbucket_scm.git.engine.subprocess.run", return_value=failed):
        result = _invoke(
            config_file, "checkout", str(tmp_path / "ws"), "-s", SERVER_ID, "-p", "Project 1",
            "-r", "rep_1",
        )
    assert result.exit_code == 1
    assert "Checkout failed" in result.output
