"""
Tests for configuration loading and saving.
"""
from pathlib import Path
from unittest.mock import patch

import pytest

from retrace.api import create_backup_store, create_tracker
from retrace.config import AppConfig, ConfigManager
from retrace.constants import BACKUP_DIR_NAME
from retrace.models import CascadePolicy, OperationKind
from retrace.tracker import compute_workspace_id

ENV_VARS = ("RETRACE_DATA_DIR", "RETRACE_BACKUP_DIR", "RETRACE_CASCADE_POLICY", "RETRACE_DEBUG")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate tests from the caller's environment and any .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("retrace.config.load_dotenv"):
        yield


@pytest.fixture
def config_file(temp_dir):
    return temp_dir / "config.toml"


def test_defaults_when_file_missing(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.tracker.cascade_policy == CascadePolicy.BLOCK
    assert config.tracker.max_operations == 1000
    assert config.debug is False
    assert config.storage.resolved_backup_dir == config.storage.data_dir / BACKUP_DIR_NAME


def test_load_from_toml(config_file, temp_dir):
    config_file.write_text(
        "debug = true\n"
        "\n"
        "[storage]\n"
        f"data_dir = \"{temp_dir / 'data'}\"\n"
        "\n"
        "[tracker]\n"
        "cascade_policy = \"cascade\"\n"
        "max_operations = 50\n"
    )

    config = ConfigManager(config_file).load_config()

    assert config.debug is True
    assert config.storage.data_dir == temp_dir / "data"
    assert config.tracker.cascade_policy == CascadePolicy.CASCADE
    assert config.tracker.max_operations == 50


@pytest.mark.parametrize("content", [
    "this is = not [valid toml",
    "[tracker]\nmax_operations = 0\n",
    "[tracker]\ncascade_policy = \"sometimes\"\n",
])
def test_invalid_file_falls_back_to_defaults(config_file, content):
    config_file.write_text(content)

    config = ConfigManager(config_file).load_config()

    assert config == AppConfig()


def test_environment_overrides_file(config_file, temp_dir, monkeypatch):
    config_file.write_text("[tracker]\ncascade_policy = \"cascade\"\n")
    monkeypatch.setenv("RETRACE_DATA_DIR", str(temp_dir / "env-data"))
    monkeypatch.setenv("RETRACE_BACKUP_DIR", str(temp_dir / "env-backups"))
    monkeypatch.setenv("RETRACE_CASCADE_POLICY", "ADVISORY")
    monkeypatch.setenv("RETRACE_DEBUG", "yes")

    config = ConfigManager(config_file).load_config()

    assert config.storage.data_dir == temp_dir / "env-data"
    assert config.storage.resolved_backup_dir == temp_dir / "env-backups"
    assert config.tracker.cascade_policy == CascadePolicy.ADVISORY
    assert config.debug is True


def test_invalid_environment_policy_is_ignored(config_file, monkeypatch):
    monkeypatch.setenv("RETRACE_CASCADE_POLICY", "sometimes")
    monkeypatch.setenv("RETRACE_DEBUG", "0")

    config = ConfigManager(config_file).load_config()

    assert config.tracker.cascade_policy == CascadePolicy.BLOCK
    assert config.debug is False


def test_save_and_reload(config_file, temp_dir):
    manager = ConfigManager(config_file)
    manager.load_config()
    manager.config.storage.data_dir = temp_dir / "saved"
    manager.config.tracker.cascade_policy = CascadePolicy.CASCADE

    manager.save_config()

    assert "backup_dir" not in config_file.read_text()
    reloaded = ConfigManager(config_file).load_config()
    assert reloaded.storage.data_dir == temp_dir / "saved"
    assert reloaded.tracker.cascade_policy == CascadePolicy.CASCADE


def test_create_tracker_from_config(temp_dir, workspace):
    config = AppConfig()
    config.storage.data_dir = temp_dir / "data"
    config.tracker.cascade_policy = CascadePolicy.ADVISORY

    tracker = create_tracker(config, workspace)
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    assert tracker.workspace_id == compute_workspace_id(workspace)
    assert tracker.cascade_policy == CascadePolicy.ADVISORY
    assert create_backup_store(config).backup_dir == temp_dir / "data" / BACKUP_DIR_NAME

    # A second tracker for the same workspace sees the persisted log
    reopened = create_tracker(config, Path(workspace))
    assert [o.id for o in reopened.operations] == [op.id]
