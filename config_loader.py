"""Configuration loader with environment variable support."""
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import yaml
from dotenv import load_dotenv

# Environment variable prefix
ENV_PREFIX = "LEDGER_"

# Default configuration values
DEFAULTS: Dict[str, Any] = {
    "sheets": {
        "spreadsheet_id": "",
        "credentials_path": "",
    },
    "cache": {
        "ttl_seconds": 30.0,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8888,
    },
    "reporting": {
        "log_level": "INFO",
    },
}

# Mapping of environment variables to config paths
ENV_MAPPING = {
    "SPREADSHEET_ID": "sheets.spreadsheet_id",
    "CREDENTIALS_PATH": "sheets.credentials_path",
    "CACHE_TTL": "cache.ttl_seconds",
    "HOST": "server.host",
    "PORT": "server.port",
    "LOG_LEVEL": "reporting.log_level",
}


class ConfigurationError(RuntimeError):
    """Raised when the store identity or credentials are missing."""
    pass


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _set_nested(config: Dict, path: str, value: Any) -> None:
    """Set a nested config value using dot notation path."""
    keys = path.split(".")
    current = config
    for key in keys[:-1]:
        if key not in current:
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _parse_env_value(value: str, current_value: Any) -> Any:
    """Parse environment variable value based on current config type."""
    if isinstance(current_value, bool):
        return value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current_value, int):
        return int(value)
    elif isinstance(current_value, float):
        return float(value)
    return value


def _get_nested(config: Dict, path: str, default: Any = None) -> Any:
    """Get a nested config value using dot notation path."""
    keys = path.split(".")
    current = config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from defaults, config file, and environment variables.

    Priority (highest to lowest):
    1. Environment variables (LEDGER_*)
    2. Config file (config.yaml)
    3. Default values

    Args:
        config_path: Optional path to config file. If not provided, looks for
                    config.yaml in current directory.

    Returns:
        Merged configuration dictionary
    """
    config = _deep_merge({}, DEFAULTS)

    if config_path is None:
        # Implicit runs pick up credentials from a local .env file.
        load_dotenv()
        config_path = os.getenv(f"{ENV_PREFIX}CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            file_config = yaml.safe_load(f) or {}
            config = _deep_merge(config, file_config)

    for env_suffix, config_path_str in ENV_MAPPING.items():
        env_var = f"{ENV_PREFIX}{env_suffix}"
        env_value = os.getenv(env_var)
        if env_value is not None:
            current_value = _get_nested(config, config_path_str)
            parsed_value = _parse_env_value(env_value, current_value)
            _set_nested(config, config_path_str, parsed_value)

    return config


def get_cache_ttl(config: Dict[str, Any]) -> float:
    """Get the grid cache time-to-live in seconds."""
    return float(_get_nested(config, "cache.ttl_seconds", DEFAULTS["cache"]["ttl_seconds"]))


def get_server_address(config: Dict[str, Any]) -> Tuple[str, int]:
    """Get (host, port) for the API server."""
    host = _get_nested(config, "server.host", DEFAULTS["server"]["host"])
    port = int(_get_nested(config, "server.port", DEFAULTS["server"]["port"]))
    return host, port


def require_sheets_settings(config: Dict[str, Any]) -> Tuple[str, str]:
    """Return (spreadsheet_id, credentials_path) or fail fast.

    Raises:
        ConfigurationError: If either value is missing or the credentials
            file does not exist.
    """
    spreadsheet_id = _get_nested(config, "sheets.spreadsheet_id", "") or ""
    credentials_path = _get_nested(config, "sheets.credentials_path", "") or ""

    if not spreadsheet_id:
        raise ConfigurationError(f"Missing spreadsheet id (set {ENV_PREFIX}SPREADSHEET_ID)")
    if not credentials_path:
        raise ConfigurationError(f"Missing credentials path (set {ENV_PREFIX}CREDENTIALS_PATH)")
    if not os.path.isfile(credentials_path):
        raise ConfigurationError(f"Credentials path is not a file: {credentials_path}")
    return spreadsheet_id, credentials_path
