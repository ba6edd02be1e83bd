"""
Loads server settings from an optional INI file, the environment, and CLI overrides.
"""

import configparser
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from qobuz_server.exceptions import ConfigurationError
from qobuz_server.models.config import ServerConfig

log = logging.getLogger(__name__)

# Environment variable -> config field
ENV_VARS = {
    "QOBUZ_APP_ID": "app_id",
    "QOBUZ_AUTH_TOKENS": "auth_tokens",
    "QOBUZ_SECRET": "app_secret",
    "QOBUZ_API_BASE": "api_base",
    "QOBUZ_TOKEN_WINDOW": "token_validation_window",
    "DOWNLOAD_PATH": "download_path",
    "FFMPEG_PATH": "ffmpeg_path",
}

BOOLEAN_KEYS = {"verify_output"}


def parse_token_list(raw: str) -> list[str]:
    """
    Parses a token pool given either as a JSON array or a comma-separated list.
    """
    raw = raw.strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            tokens = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Token pool is not valid JSON: {e}") from e
        return [str(t).strip() for t in tokens if str(t).strip()]
    return [t.strip() for t in raw.split(",") if t.strip()]


class ConfigManager:
    """Handles all operations related to loading the server configuration."""

    def __init__(
        self,
        config_file_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_file_path = config_file_path
        self.environ = os.environ if environ is None else environ
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ServerConfig:
        """
        Merges the INI file, environment variables and CLI options, then validates.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated ServerConfig object.

        Raises:
            ConfigurationError: If the config file is unreadable or validation fails.
        """
        settings: dict[str, Any] = {}
        settings.update(self._get_file_settings())
        settings.update(self._get_env_settings())
        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return ServerConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _get_file_settings(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        if self.config_file_path is None:
            return {}
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        section = self._parser["DEFAULT"]
        settings: dict[str, Any] = {}
        for key in ServerConfig.get_ini_keys():
            if key not in section:
                continue
            try:
                if key in BOOLEAN_KEYS:
                    settings[key] = section.getboolean(key)
                elif key == "auth_tokens":
                    settings[key] = parse_token_list(section.get(key, ""))
                else:
                    settings[key] = section.get(key)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for '{key}': {e}") from e

        unknown = set(section) - ServerConfig.get_ini_keys()
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown configuration keys: "
                f"{', '.join(sorted(unknown))}[/yellow]"
            )
        return settings

    def _get_env_settings(self) -> dict[str, Any]:
        """Collects settings from the deployment's environment variables."""
        settings: dict[str, Any] = {}
        for env_name, key in ENV_VARS.items():
            value = self.environ.get(env_name)
            if value is None or not value.strip():
                continue
            if key == "auth_tokens":
                settings[key] = parse_token_list(value)
            else:
                settings[key] = value
        return settings
