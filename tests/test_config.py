"""Tests for AppConfig."""
import json
from pathlib import Path

import pytest

from devscope.core.config import AppConfig, load_config_file


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME and the working directory at empty temp dirs."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.chdir(work)
    return home, work


def test_app_config_default_output_dir(isolated_home):
    """When output_dir is not provided, it defaults to Path('output')."""
    config = AppConfig()
    assert config.output_dir == Path("output").resolve()
    assert config.output_dir.exists()


def test_app_config_explicit_output_dir(tmp_path):
    """When output_dir is provided, it is used and resolved."""
    path = tmp_path / "custom_out"
    config = AppConfig(output_dir=path)
    assert config.output_dir == path.resolve()
    assert config.output_dir.exists()


def test_app_config_output_dir_from_string(tmp_path):
    """output_dir can be passed as a string and is converted to Path."""
    config = AppConfig(output_dir=str(tmp_path))
    assert config.output_dir == tmp_path.resolve()


def test_app_config_defaults(tmp_path):
    """Timing and concurrency defaults."""
    config = AppConfig(output_dir=tmp_path)
    assert config.command_timeout_ms == 5000
    assert config.poll_interval_ms == 5000
    assert config.max_workers == 8
    assert config.probe_timeout == 30.0
    assert config.cache_ttl == 300.0
    assert config.verbose is False


def test_app_config_env_override(tmp_path, monkeypatch):
    """DEVSCOPE_* environment variables override defaults."""
    monkeypatch.setenv("DEVSCOPE_POLL_INTERVAL_MS", "2000")
    monkeypatch.setenv("DEVSCOPE_MAX_WORKERS", "3")
    config = AppConfig(output_dir=tmp_path)
    assert config.poll_interval_ms == 2000
    assert config.max_workers == 3


def test_app_config_rejects_non_positive_timeout(tmp_path):
    """Timeouts must be positive."""
    with pytest.raises(ValueError):
        AppConfig(output_dir=tmp_path, command_timeout_ms=0)


def test_save_snapshot(tmp_path):
    """save_snapshot writes a timestamped JSON document."""
    config = AppConfig(output_dir=tmp_path)
    snapshot = config.save_snapshot("tools", [{"name": "node", "is_installed": True}])

    assert snapshot.parent == config.output_dir
    assert snapshot.name.startswith("20")  # timestamp
    assert snapshot.name.endswith("_tools.json")

    document = json.loads(snapshot.read_text(encoding="utf-8"))
    assert document["kind"] == "tools"
    assert document["data"] == [{"name": "node", "is_installed": True}]
    assert "timestamp" in document


def test_load_config_file_no_file(isolated_home):
    """When no config file exists, load_config_file returns empty dict."""
    assert load_config_file() == {}


def test_load_config_file_from_cwd(isolated_home):
    """Keys from ./.devscope.yaml are read and converted."""
    _home, work = isolated_home
    (work / ".devscope.yaml").write_text(
        "verbose: true\n"
        "poll_interval_ms: 1500\n"
        "max_workers: '4'\n"
        "cache_ttl: not-a-number\n"
        "unknown_key: 1\n",
        encoding="utf-8",
    )

    result = load_config_file()

    assert result["verbose"] is True
    assert result["poll_interval_ms"] == 1500
    assert result["max_workers"] == 4
    assert "cache_ttl" not in result
    assert "unknown_key" not in result


def test_load_config_file_home_wins(isolated_home):
    """~/.devscope.yaml is preferred over the working directory."""
    home, work = isolated_home
    (home / ".devscope.yaml").write_text("max_workers: 2\n", encoding="utf-8")
    (work / ".devscope.yaml").write_text("max_workers: 6\n", encoding="utf-8")

    assert load_config_file()["max_workers"] == 2


def test_load_config_file_invalid_yaml(isolated_home):
    """A malformed file is ignored."""
    _home, work = isolated_home
    (work / ".devscope.yaml").write_text("max_workers: [unclosed\n", encoding="utf-8")

    assert load_config_file() == {}
