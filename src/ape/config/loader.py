"""
Configuration loading system for APE.

This module handles loading, merging, and validating configuration from
YAML files and environment variables.
"""

import os
from pathlib import Path
from typing import Optional, Dict, Any, List, Union, Tuple
import yaml
from pydantic import ValidationError as PydanticValidationError
from dotenv import load_dotenv

from .models import ApeConfig
from ..utils.error_handling import ConfigurationError, handle_configuration_operation
from ..utils.logging import get_logger


ENV_PREFIX = "APE_"
# Separates section from field so that field names keep their underscores:
# APE_RESOLVER__MODEL_TIMEOUT_SECONDS -> resolver.model_timeout_seconds
ENV_NESTING = "__"


class ConfigLoader:
    """
    Configuration loader that supports multiple sources and validation.

    Loading priority (highest to lowest):
    1. Environment variables (APE_<SECTION>__<FIELD>)
    2. Explicitly specified config file
    3. Environment-specific config (configs/<APE_ENV>.yaml)
    4. Default configuration file (configs/default.yaml)
    5. Built-in defaults (from Pydantic models)
    """

    def __init__(self, search_root: Optional[Union[str, Path]] = None):
        """Initialize the configuration loader.

        Args:
            search_root: Directory searched for config files (defaults to cwd)
        """
        self.search_root = Path(search_root) if search_root else Path(".")
        self.logger = get_logger(__name__)
        self._config: Optional[ApeConfig] = None
        self._config_path: Optional[Path] = None

        env_file = self.search_root / ".env"
        if env_file.exists():
            load_dotenv(env_file)

    @property
    def config_path(self) -> Optional[Path]:
        """Path of the explicitly loaded config file, if any."""
        return self._config_path

    @handle_configuration_operation("load_config")
    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ApeConfig:
        """
        Load configuration from multiple sources and validate it.

        Args:
            config_path: Optional path to a specific config file

        Returns:
            Validated ApeConfig instance

        Raises:
            ConfigurationError: If configuration loading or validation fails
        """
        config_data: Dict[str, Any] = {}

        default_config_path = self._find_config("default")
        if default_config_path:
            self.logger.debug(f"Loading default config from {default_config_path}")
            config_data = self._deep_merge(config_data, self._load_yaml_file(default_config_path))

        env_name = os.getenv("APE_ENV")
        if env_name:
            env_config_path = self._find_config(env_name)
            if env_config_path and env_config_path != default_config_path:
                self.logger.debug(f"Loading {env_name} config from {env_config_path}")
                config_data = self._deep_merge(config_data, self._load_yaml_file(env_config_path))

        if config_path:
            explicit_path = Path(config_path)
            if not explicit_path.exists():
                raise ConfigurationError(
                    f"Specified config file not found: {config_path}",
                    details={"error_type": "file_access", "path": str(config_path)}
                )
            config_data = self._deep_merge(config_data, self._load_yaml_file(explicit_path))
            self._config_path = explicit_path

        config_data = self._apply_env_overrides(config_data)

        try:
            self._config = ApeConfig(**config_data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {self._format_validation_error(e)}",
                details={"error_type": "validation"}
            ) from e

        return self._config

    def get_config(self) -> ApeConfig:
        """Get the current configuration, loading it if necessary."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def reload_config(self, config_path: Optional[Union[str, Path]] = None) -> ApeConfig:
        """Reload configuration from sources."""
        self._config = None
        return self.load_config(config_path)

    def _find_config(self, name: str) -> Optional[Path]:
        """Find ``<name>.yaml`` in the usual config locations."""
        candidates = [
            self.search_root / "configs" / f"{name}.yaml",
            self.search_root / "configs" / f"{name}.yml",
            self.search_root / "config" / f"{name}.yaml",
            self.search_root / "config" / f"{name}.yml",
        ]

        for path in candidates:
            if path.exists():
                return path

        return None

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Load and parse a YAML configuration file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in {file_path}: {e}",
                details={"error_type": "yaml", "path": str(file_path)}
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read configuration file {file_path}: {e}",
                details={"error_type": "file_access", "path": str(file_path)}
            ) from e

        if data is None:
            return {}

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {file_path} must contain a YAML object (dictionary)"
            )

        return data

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides to configuration.

        Example: APE_LLM__MAX_RETRIES=5 overrides llm.max_retries. APE_ENV is
        reserved for environment selection and is skipped.
        """
        result = self._deep_merge({}, config_data)

        for env_key, env_value in sorted(os.environ.items()):
            if not env_key.startswith(ENV_PREFIX) or ENV_NESTING not in env_key:
                continue

            path = [part.lower() for part in env_key[len(ENV_PREFIX):].split(ENV_NESTING)]
            if any(not part for part in path):
                self.logger.warning(f"Ignoring malformed config override: {env_key}")
                continue

            self._set_nested_value(result, path, self._convert_env_value(env_value))

        return result

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to bool, int, float, list or string."""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if '.' not in value:
                return int(value)
            return float(value)
        except ValueError:
            pass

        if ',' in value:
            return [item.strip() for item in value.split(',')]

        return value

    def _set_nested_value(self, data: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a value in a nested dictionary using a path."""
        current = data

        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            elif not isinstance(current[key], dict):
                self.logger.warning(f"Cannot apply override to non-section '{key}'")
                return
            current = current[key]

        current[path[-1]] = value

    def _format_validation_error(self, error: PydanticValidationError) -> str:
        """Format a Pydantic validation error for user-friendly display."""
        messages = []
        for err in error.errors():
            location = " -> ".join(str(loc) for loc in err['loc'])
            messages.append(f"  {location}: {err['msg']} (got: {err.get('input', 'N/A')})")

        return "Validation errors:\n" + "\n".join(messages)


_config_loader: Optional[ConfigLoader] = None


def _get_loader() -> ConfigLoader:
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_config(config_path: Optional[Union[str, Path]] = None) -> ApeConfig:
    """
    Load configuration from multiple sources.

    Raises:
        ConfigurationError: If configuration loading fails
    """
    return _get_loader().load_config(config_path)


def get_config() -> ApeConfig:
    """Get the current configuration, loading it if necessary."""
    return _get_loader().get_config()


def reload_config(config_path: Optional[Union[str, Path]] = None) -> ApeConfig:
    """Reload configuration from sources."""
    return _get_loader().reload_config(config_path)


def validate_config_file(config_path: Union[str, Path]) -> Tuple[bool, Optional[str]]:
    """
    Validate a configuration file without loading it globally.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        ConfigLoader().load_config(config_path)
        return True, None
    except ConfigurationError as e:
        return False, str(e)
