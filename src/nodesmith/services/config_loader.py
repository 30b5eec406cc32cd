"""Configuration loader for Nodesmith."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from nodesmith.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "execution",
        "consensus",
        "validator",
        "network",
        "path",
        "checkpoint_sync_url",
        "fee_recipient",
        "no_mev_boost",
        "mev_boost_image",
        "relay_urls",
        "no_validator",
        "jwt_secret_path",
        "graffiti",
        "run",
        "map_all",
        "run_clients",
        "fallback_execution_urls",
        "el_extra_flags",
        "cl_extra_flags",
        "vl_extra_flags",
        "logging",
        "sync_timeout_minutes",
        "verbose",
        "log_file",
    }
    LIST_KEYS = {
        "relay_urls",
        "run_clients",
        "fallback_execution_urls",
        "el_extra_flags",
        "cl_extra_flags",
        "vl_extra_flags",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(str(key) for key in unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        for key in sorted(self.LIST_KEYS & set(parsed.keys())):
            value = parsed[key]
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ConfigurationError(f"Configuration key '{key}' must be a list of strings.")

        return parsed
