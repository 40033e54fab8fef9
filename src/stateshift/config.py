"""
Expander Configuration

Loads configuration from a YAML file, then applies environment overrides.
Controls annotation names, the hidden state field, the runtime import and
how failures are isolated.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


# Default configuration file locations (checked in order)
CONFIG_SEARCH_PATHS = [
    Path("stateshift.yaml"),
    Path.home() / ".stateshift" / "config.yaml",
]


DEFAULT_CONFIG: Dict[str, Any] = {
    # Annotation (decorator) names
    "require": "require",
    "switch_to": "switch_to",
    "type_state": "type_state",
    "states": "states",

    # Generated code
    "state_field": "_state",
    "runtime_module": "stateshift.runtime",
    "runtime_alias": "_stateshift",

    # Drop only the failing operation instead of the whole tracked type
    "isolate_failures": True,
}


ENV_OVERRIDES = {
    "STATESHIFT_STATE_FIELD": "state_field",
    "STATESHIFT_RUNTIME_MODULE": "runtime_module",
    "STATESHIFT_RUNTIME_ALIAS": "runtime_alias",
    "STATESHIFT_ISOLATE_FAILURES": "isolate_failures",
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ExpanderConfig:
    """Configuration for the expander."""

    def __init__(self, config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = dict(DEFAULT_CONFIG)
        self._config_path: Optional[Path] = None

        self._load_config(config_path)
        self._apply_env_overrides()

        if overrides:
            self._merge(overrides, source="overrides")

    @classmethod
    def defaults(cls, **overrides: Any) -> "ExpanderConfig":
        """Defaults only: no file lookup, no environment."""
        config = cls.__new__(cls)
        config._config = dict(DEFAULT_CONFIG)
        config._config_path = None
        if overrides:
            config._merge(overrides, source="overrides")
        return config

    def _load_config(self, explicit_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file."""
        search_paths = [explicit_path] if explicit_path else CONFIG_SEARCH_PATHS

        for config_path in search_paths:
            if config_path and config_path.exists():
                try:
                    with open(config_path, "r", encoding="utf-8") as f:
                        user_config = yaml.safe_load(f) or {}
                except (OSError, yaml.YAMLError) as e:
                    logger.warning("Failed to load config from %s: %s", config_path, e)
                    continue
                if not isinstance(user_config, dict):
                    logger.warning("Ignoring config %s: expected a mapping", config_path)
                    continue
                self._merge(user_config, source=str(config_path))
                self._config_path = config_path
                return

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        for env_var, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value is None:
                continue
            self._merge({key: _parse_bool(value) if key == "isolate_failures" else value}, source=env_var)

    def _merge(self, values: Dict[str, Any], source: str) -> None:
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                logger.warning("Unknown config key %r in %s", key, source)
                continue
            expected = type(DEFAULT_CONFIG[key])
            if not isinstance(value, expected):
                logger.warning("Config key %r in %s must be %s, got %r", key, source, expected.__name__, value)
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    @property
    def require_name(self) -> str:
        return self._config["require"]

    @property
    def switch_to_name(self) -> str:
        return self._config["switch_to"]

    @property
    def type_state_name(self) -> str:
        return self._config["type_state"]

    @property
    def states_name(self) -> str:
        return self._config["states"]

    @property
    def state_field(self) -> str:
        return self._config["state_field"]

    @property
    def runtime_module(self) -> str:
        return self._config["runtime_module"]

    @property
    def runtime_alias(self) -> str:
        return self._config["runtime_alias"]

    @property
    def isolate_failures(self) -> bool:
        return self._config["isolate_failures"]

    @property
    def annotation_names(self) -> List[str]:
        return [self.require_name, self.switch_to_name, self.type_state_name, self.states_name]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)


def get_config(config_path: Optional[Path] = None) -> ExpanderConfig:
    """Load the configuration (file, then environment)."""
    return ExpanderConfig(config_path)
