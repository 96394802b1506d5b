"""Load [tool.flakiness-linter] from pyproject.toml. Infrastructure I/O only."""

import logging
import tomllib
from pathlib import Path

from flakiness_linter.domain.config import CONFIG_SCOPE
from flakiness_linter.domain.constants import TOOL_SECTION
from flakiness_linter.domain.errors import ConfigError

logger = logging.getLogger(__name__)


class ConfigFileLoader:
    """
    Loads config from the nearest pyproject.toml, walking up from the working directory.
    """

    @staticmethod
    def find_config_file(start: Path | None = None) -> Path | None:
        current_path = (start or Path.cwd()).resolve()
        for directory in (current_path, *current_path.parents):
            config_file = directory / "pyproject.toml"
            if config_file.exists():
                return config_file
        return None

    @staticmethod
    def load_config_from_fs(start: Path | None = None) -> tuple[dict[str, object], dict[str, object]]:
        """Load [tool.flakiness-linter] and [tool] from pyproject.toml. Returns (config_dict, tool_section)."""
        empty: dict[str, object] = {}
        config_file = ConfigFileLoader.find_config_file(start)
        if config_file is None:
            return (empty, empty)
        try:
            with config_file.open("rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            logger.debug("Cannot read %s: %s", config_file, e)
            return (empty, empty)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(CONFIG_SCOPE, None, f"{config_file} is not valid TOML: {e}") from e
        tool_section = data.get("tool", {}) or {}
        config_dict = tool_section.get(TOOL_SECTION, {}) or {}
        logger.debug("Loaded [tool.%s] from %s", TOOL_SECTION, config_file)
        return (config_dict, tool_section)
