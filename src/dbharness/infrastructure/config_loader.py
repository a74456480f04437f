"""
Harness configuration file loading.

Loads the harness configuration from a JSON file (dbharness.json by
default) into a validated HarnessConfig:

{
  "global_policy": {"use_parallel_initialisation": true},
  "providers": {"sqlserver": {"server_kind": "localdb", "local_instance_name": "dbharness"}},
  "databases": [{"name": "Orders", "schema_artifact_path": "artifacts/Orders.dacpac"}]
}

Relative artifact and data file paths resolve against the directory of the
configuration file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from dbharness.domain.config import HarnessConfig
from dbharness.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "dbharness.json"

_PATH_FIELDS = ("schema_artifact_path", "data_file_path")


class ConfigLoader:
    """Load and validate harness configuration files."""

    def __init__(self, config_path: str | Path = DEFAULT_CONFIG_FILE):
        """
        Args:
            config_path: JSON configuration file
        """
        self.config_path = Path(config_path)
        logger.debug("ConfigLoader initialized with file: %s", self.config_path)

    def _load_json_file(self, filepath: Path) -> dict[str, Any]:
        """
        Load and parse a JSON file with hint-rich errors.

        Raises:
            ConfigurationError: If the file is missing, unreadable, empty or malformed
        """
        if not filepath.exists():
            raise ConfigurationError(
                f"Configuration file not found: {filepath}\n"
                f"Hint: Create {DEFAULT_CONFIG_FILE} next to your tests or pass --config."
            )

        try:
            content = filepath.read_text(encoding="utf-8-sig")
        except PermissionError as e:
            raise ConfigurationError(
                f"Cannot read config file (permission denied): {filepath}\n"
                f"Hint: Check file permissions or if another process has it locked."
            ) from e

        if not content.strip():
            raise ConfigurationError(
                f"Configuration file is empty: {filepath}\n"
                f"Hint: Add at least an empty JSON object: {{}}"
            )

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {filepath}\n"
                f"Error at line {e.lineno}, column {e.colno}: {e.msg}\n"
                f"Hint: Validate JSON syntax. Note: .json files cannot have comments."
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root must be a JSON object: {filepath}")
        return data

    def _resolve_paths(self, data: dict[str, Any]) -> dict[str, Any]:
        base_dir = self.config_path.resolve().parent
        databases = []
        for item in data.get("databases") or []:
            if isinstance(item, dict):
                item = dict(item)
                for field in _PATH_FIELDS:
                    value = item.get(field)
                    if value and not Path(value).is_absolute():
                        item[field] = str(base_dir / value)
            databases.append(item)
        return {**data, "databases": databases}

    def load(self) -> HarnessConfig:
        """
        Load the configuration file.

        Returns:
            Validated HarnessConfig

        Raises:
            ConfigurationError: If the file can't be read or fails validation
        """
        logger.info("Loading harness configuration from: %s", self.config_path)
        data = self._resolve_paths(self._load_json_file(self.config_path))

        try:
            config = HarnessConfig.model_validate(data)
        except ValidationError as e:
            problems = "\n".join(
                f"  - {'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration in {self.config_path}:\n{problems}") from e

        logger.info(
            "Loaded %d provider(s) and %d database(s)",
            len(config.providers), len(config.databases),
        )
        return config


def load_config(config_path: str | Path = DEFAULT_CONFIG_FILE) -> HarnessConfig:
    return ConfigLoader(config_path).load()
