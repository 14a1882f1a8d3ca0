"""Configuration loader for indexrunner.

Parses application configuration into kernel config models. Supports three
config sources:

1. **kind: Config YAML** - loaded via explicit path or the
   ``INDEXRUNNER_CONFIG_PATH`` env var.
2. **Standalone TOML** - either flat or with a ``[tool.indexrunner]`` table.
3. **pyproject.toml [tool.indexrunner]** - auto-discovery fallback.
"""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

import yaml

from indexrunner.kernel.config.models import IndexRunnerConfig, LoggingConfig, RunDefaults
from indexrunner.kernel.exceptions import ConfigurationError, ValidationError
from indexrunner.kernel.logging import get_logger
from indexrunner.kernel.orchestration.models import OrchestratorConfig

# Type alias for configuration data that can be recursively substituted
ConfigData = str | dict[str, "ConfigData"] | list["ConfigData"] | int | float | bool | None

CONFIG_PATH_ENV = "INDEXRUNNER_CONFIG_PATH"
TOOL_SECTION = "indexrunner"

# Constants for boolean environment variable parsing
_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Parameters
    ----------
    value : str
        Environment variable value

    Returns
    -------
    bool
        Parsed boolean value

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str) -> IndexRunnerConfig:
    """Cached configuration loader."""
    loader = ConfigLoader()
    return loader._load_and_parse(Path(path_str))


class ConfigLoader:
    """Loads and processes indexrunner configuration files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def load_config_file(self, path: str | Path | None = None) -> IndexRunnerConfig:
        """Load configuration from YAML or TOML.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Returns
        -------
        IndexRunnerConfig
            Parsed configuration with environment variables substituted

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        ConfigurationError
            If the file exists but is not a valid configuration
        """
        config_path = self._find_config_file(path)
        return _load_and_parse_cached(str(config_path.absolute()))

    def _load_and_parse(self, config_path: Path) -> IndexRunnerConfig:
        """Load and parse configuration file (YAML or TOML)."""
        logger.info("Loading configuration from {path}", path=config_path)

        try:
            if config_path.suffix in (".yaml", ".yml"):
                data = self._load_yaml_config(config_path)
            else:
                data = self._load_toml_config(config_path)
        except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(str(config_path), str(e)) from e

        data = self._substitute_env_vars(data)
        try:
            return self._parse_config(data)
        except (ValidationError, TypeError, ValueError) as e:
            raise ConfigurationError(str(config_path), str(e)) from e

    def _load_yaml_config(self, config_path: Path) -> dict[str, Any]:
        """Load the ``spec`` mapping of a kind: Config YAML file."""
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(
                str(config_path), f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                str(config_path),
                f"YAML config file must use 'kind: Config' manifest format, got 'kind: {kind}'",
            )

        spec = data.get("spec") or {}
        if not isinstance(spec, dict):
            raise ConfigurationError(str(config_path), "'spec' field must be a mapping")
        return spec

    def _load_toml_config(self, config_path: Path) -> dict[str, Any]:
        """Load the indexrunner table of a TOML config file.

        A pyproject.toml without a ``[tool.indexrunner]`` table yields defaults.
        """
        with config_path.open("rb") as f:
            data = tomllib.load(f)

        tool_data = data.get("tool", {}).get(TOOL_SECTION)
        if config_path.name == "pyproject.toml":
            if not tool_data:
                logger.warning(
                    f"No [tool.{TOOL_SECTION}] section found in pyproject.toml, using defaults"
                )
                return {}
            return cast("dict[str, Any]", tool_data)
        # Direct TOML file - either [tool.indexrunner] or flat
        return cast("dict[str, Any]", tool_data if tool_data is not None else data)

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``INDEXRUNNER_CONFIG_PATH`` env var
        3. ``pyproject.toml`` in CWD
        4. ``pyproject.toml`` in parent directories (with ``[tool.indexrunner]``)

        Raises
        ------
        FileNotFoundError
            If no configuration file is found
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv(CONFIG_PATH_ENV):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from {}: {}", CONFIG_PATH_ENV, config_path)
                return config_path
            logger.warning("{} set but file not found: {}", CONFIG_PATH_ENV, config_path)

        if Path("pyproject.toml").exists():
            return Path("pyproject.toml")

        # Parent directory traversal for pyproject.toml
        current = Path.cwd()
        while current != current.parent:
            pyproject = current / "pyproject.toml"
            if pyproject.exists():
                with pyproject.open("rb") as f:
                    data = tomllib.load(f)
                if TOOL_SECTION in data.get("tool", {}):
                    return pyproject
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Provide a kind: Config YAML path, "
            f"set {CONFIG_PATH_ENV}, or add [tool.{TOOL_SECTION}] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ``${VAR}`` environment variables in configuration."""
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    logger.debug(
                        "Environment variable ${{{var_name}}} not found, keeping placeholder",
                        var_name=var_name,
                    )
                    return match.group(0)
                return value

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> IndexRunnerConfig:
        """Parse configuration data into IndexRunnerConfig."""
        config = IndexRunnerConfig()

        config.logging = self._parse_logging_config(data.get("logging", {}))
        config.auto_close = bool(data.get("auto_close", False))
        config.silent = bool(data.get("silent", False))

        if run_data := data.get("run"):
            config.run = RunDefaults(
                max_workers=run_data.get("max_workers"),
                use_concurrency=run_data.get("use_concurrency", True),
                estimate_progress=run_data.get("estimate_progress", True),
                observer_timeout=run_data.get("observer_timeout", 5.0),
            )

        if orchestrator_data := data.get("orchestrator"):
            config.orchestrator = OrchestratorConfig(
                dispose_grace_period=orchestrator_data.get("dispose_grace_period", 30.0),
                cancel_grace_period=orchestrator_data.get("cancel_grace_period"),
                escalate_dispose_failures=orchestrator_data.get(
                    "escalate_dispose_failures", False
                ),
                thread_name_prefix=orchestrator_data.get("thread_name_prefix", "indexrunner-job"),
            )

        return config

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration with environment variable overrides.

        Environment variables take precedence over config file values:
        - INDEXRUNNER_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - INDEXRUNNER_LOG_FORMAT: Output format (console, json, structured, rich)
        - INDEXRUNNER_LOG_FILE: Optional file path for log output
        - INDEXRUNNER_LOG_COLOR: Use color output (true/false)
        - INDEXRUNNER_LOG_TIMESTAMP: Include timestamp (true/false)
        - INDEXRUNNER_LOG_BACKTRACE: Enable backtrace in logs (true/false)
        - INDEXRUNNER_LOG_DIAGNOSE: Enable diagnose mode (true/false)
        """
        level = logging_data.get("level", "INFO")
        format_type = logging_data.get("format", "structured")
        output_file = logging_data.get("output_file")

        if env_level := os.getenv("INDEXRUNNER_LOG_LEVEL"):
            level = env_level
            logger.debug("Overriding log level from env: {}", level)

        if env_format := os.getenv("INDEXRUNNER_LOG_FORMAT"):
            format_type = env_format
            logger.debug("Overriding log format from env: {}", format_type)

        if env_file := os.getenv("INDEXRUNNER_LOG_FILE"):
            output_file = env_file
            logger.debug("Overriding log file from env: {}", output_file)

        flags = {
            name: self._bool_override(env_name, logging_data.get(name, default))
            for name, env_name, default in (
                ("use_color", "INDEXRUNNER_LOG_COLOR", True),
                ("include_timestamp", "INDEXRUNNER_LOG_TIMESTAMP", True),
                ("backtrace", "INDEXRUNNER_LOG_BACKTRACE", True),
                ("diagnose", "INDEXRUNNER_LOG_DIAGNOSE", False),
            )
        }

        level = str(level).upper()
        format_type = str(format_type).lower()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValidationError("logging.level", "unknown log level", level)
        if format_type not in ("console", "json", "structured", "rich"):
            raise ValidationError("logging.format", "unknown log format", format_type)

        return LoggingConfig(
            level=cast("Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']", level),
            format=cast("Literal['console', 'json', 'structured', 'rich']", format_type),
            output_file=output_file,
            **flags,
        )

    @staticmethod
    def _bool_override(env_name: str, current: bool) -> bool:
        if env_value := os.getenv(env_name):
            try:
                value = _parse_bool_env(env_value)
            except ValueError as e:
                logger.warning("Invalid {} value: {}", env_name, e)
                return current
            logger.debug("Overriding {} from env: {}", env_name, value)
            return value
        return bool(current)


def load_config(path: str | Path | None = None) -> IndexRunnerConfig:
    """Load configuration from file or return defaults.

    Parameters
    ----------
    path : str | Path | None
        Path to configuration file or None to search

    Returns
    -------
    IndexRunnerConfig
        Loaded configuration or defaults if no file found
    """
    try:
        loader = ConfigLoader()
        return loader.load_config_file(path)
    except FileNotFoundError:
        if path:
            raise
        logger.info("No configuration file found, using defaults")
        return get_default_config()


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when configuration files have been modified
    and you need to force a reload.
    """
    _load_and_parse_cached.cache_clear()


def get_default_config() -> IndexRunnerConfig:
    """Get default configuration."""
    return IndexRunnerConfig()
