"""Unit tests for ConfigFileLoader."""

from pathlib import Path

import pytest

from flakiness_linter.domain.errors import ConfigError
from flakiness_linter.infrastructure.config_file_loader import ConfigFileLoader


def test_finds_nearest_pyproject_walking_up(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.flakiness-linter]\nextends = 'strict'\n")
    nested = tmp_path / "web" / "tests"
    nested.mkdir(parents=True)
    assert ConfigFileLoader.find_config_file(nested) == (tmp_path / "pyproject.toml").resolve()


def test_loads_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[tool.flakiness-linter]\n"
        "exclude = ['**/legacy/*']\n"
        "[tool.flakiness-linter.rules]\n"
        "no-long-text-match = { severity = 'error', options = { maxLength = 80 } }\n"
        "[tool.other]\nx = 1\n"
    )
    config, tool = ConfigFileLoader.load_config_from_fs(tmp_path)
    assert config["exclude"] == ["**/legacy/*"]
    assert config["rules"]["no-long-text-match"]["options"]["maxLength"] == 80
    assert tool["other"] == {"x": 1}


def test_missing_section_is_empty(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'web'\n")
    assert ConfigFileLoader.load_config_from_fs(tmp_path)[0] == {}


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.flakiness-linter\n")
    with pytest.raises(ConfigError, match="not valid TOML"):
        ConfigFileLoader.load_config_from_fs(tmp_path)
