"""
Config system - Layered typed configuration with validation.

Sources merge with precedence (later wins):
defaults < config files (JSON/YAML) < .env file < BIZPULSE_* environment < overrides
"""

from typing import Any, Dict, List, Mapping, Optional, Type, get_type_hints, get_origin, get_args
from dataclasses import dataclass, asdict, fields, is_dataclass, MISSING
from pathlib import Path
import json
import os
import types

from dotenv import dotenv_values

DEFAULT_CONFIG_FILES = ("bizpulse.yaml", "bizpulse.yml", "bizpulse.json")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ClientConfig:
    """Settings for the realtime notification client."""

    # Backend
    backend_url: str = "http://localhost:5000"
    ws_path: str = "/ws"
    secure: Optional[bool] = None
    http_timeout: float = 10.0

    # Reconnection
    max_reconnect_attempts: int = 5
    backoff_base: float = 1.0
    backoff_cap: float = 30.0
    backoff_jitter: bool = True

    # Feed
    history_limit: int = 50
    status_poll_interval: float = 5.0
    icon: str = "/favicon.ico"

    # Persistence
    company_id: Optional[str] = None
    target_type: str = "company"
    sender_id: str = "system"
    sender_name: str = "System"

    # Push
    push_enabled: bool = True
    vapid_public_key: Optional[str] = None
    worker_script: str = "/sw.js"
    worker_scope: str = "/"
    app_origin: Optional[str] = None
    app_name: str = "BizPulse"

    # Local state
    token_file: str = "~/.bizpulse/credentials.json"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_reconnect_attempts < 0:
            raise ConfigError("max_reconnect_attempts must be >= 0")
        if self.history_limit < 1:
            raise ConfigError("history_limit must be >= 1")
        if self.backoff_base < 0 or self.backoff_cap < 0:
            raise ConfigError("backoff delays must be non-negative")
        if self.status_poll_interval <= 0:
            raise ConfigError("status_poll_interval must be positive")

    @property
    def ws_url(self) -> str:
        from bizpulse.sockets.transport import build_ws_url
        try:
            return build_ws_url(self.backend_url, self.ws_path, secure=self.secure)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    @property
    def origin(self) -> str:
        """Origin the push platform runs under (defaults to the backend)."""
        return self.app_origin or self.backend_url

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "BIZPULSE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}
        self.sources: List[str] = []

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "BIZPULSE_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources.

        Merge order (later overrides earlier):
        1. Config files (JSON or YAML); bizpulse.yaml / bizpulse.json in the
           working directory when no paths are given
        2. .env file
        3. Environment variables (BIZPULSE_* prefix, ``__`` for nesting)
        4. Manual overrides

        Args:
            paths: Config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        if not paths:
            paths = [name for name in DEFAULT_CONFIG_FILES if Path(name).exists()][:1]

        for pattern in paths:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)
            loader.sources.append("overrides")

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        matches = sorted(glob(os.path.expanduser(pattern)))
        if not matches and not any(ch in pattern for ch in "*?["):
            raise ConfigError(f"Config file not found: {pattern}")

        for path_str in matches:
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigError(f"Unsupported config file type: {path}")
            self.sources.append(str(path))

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
        self._merge_file_data(path, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        import yaml
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        self._merge_file_data(path, data)

    def _merge_file_data(self, path: Path, data: Any):
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)
        self.sources.append(str(env_path))

    def _load_from_env(self, environ: Mapping[str, str]):
        """Load config from environment variables."""
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert BIZPULSE_PUSH__WORKER_SCOPE to nested dict."""
        key = key[len(self.env_prefix):]

        # Split by double underscore for nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        name = parts[-1]
        text_fields = self._text_fields()
        if len(parts) == 1 and name in text_fields:
            # string settings keep their exact spelling (ids like 00123)
            if text_fields[name] and value.lower() in ("null", "none"):
                current[name] = None
            else:
                current[name] = value
        else:
            current[name] = self._parse_value(value)

    @staticmethod
    def _text_fields() -> Dict[str, bool]:
        """ClientConfig string fields mapped to whether they are optional."""
        text = {}
        for name, hint in get_type_hints(ClientConfig).items():
            if hint is str:
                text[name] = False
            elif hint == Optional[str]:
                text[name] = True
        return text

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False
        if lowered in ("null", "none"):
            return None

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # JSON
        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        parts = path.split(".")
        current = self.config_data

        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def client_config(self) -> ClientConfig:
        """Validated ``ClientConfig`` from the merged data."""
        return self._instantiate_dataclass(ClientConfig, self.config_data)

    def _instantiate_dataclass(self, config_class: Type, data: dict):
        """Instantiate dataclass config with validation."""
        if not is_dataclass(config_class):
            raise ConfigError(f"{config_class.__name__} is not a dataclass")

        hints = get_type_hints(config_class)
        kwargs = {}

        for field_info in fields(config_class):
            field_name = field_info.name
            field_type = hints.get(field_name, Any)

            if field_name in data:
                value = self._coerce(data[field_name], field_type)

                if not self._check_type(value, field_type):
                    raise ConfigError(
                        f"Config field '{field_name}' expected {field_type}, "
                        f"got {type(value).__name__}"
                    )

                kwargs[field_name] = value
            elif field_info.default is not MISSING:
                kwargs[field_name] = field_info.default
            elif field_info.default_factory is not MISSING:
                kwargs[field_name] = field_info.default_factory()
            else:
                raise ConfigError(
                    f"Required config field '{field_name}' not provided"
                )

        return config_class(**kwargs)

    def _coerce(self, value: Any, expected_type: Any) -> Any:
        """Widen values parsed from env strings to the declared type."""
        target = expected_type
        if self._is_optional(expected_type):
            target = next(a for a in get_args(expected_type) if a is not type(None))

        if isinstance(value, bool):
            return value
        if target is bool and value in (0, 1):
            return bool(value)
        if target is float and isinstance(value, int):
            return float(value)
        if target is str and isinstance(value, (int, float)):
            return str(value)
        return value

    @staticmethod
    def _is_optional(expected_type: Any) -> bool:
        origin = get_origin(expected_type)
        is_union = origin is types.UnionType or str(origin) == "typing.Union"
        return is_union and type(None) in get_args(expected_type)

    def _check_type(self, value: Any, expected_type: Type) -> bool:
        """Basic type checking."""
        # Handle Optional types (Optional[X] is Union[X, None])
        origin = get_origin(expected_type)
        if origin is types.UnionType or str(origin) == 'typing.Union':
            args = get_args(expected_type)
            if value is None:
                return True
            return any(self._check_type(value, a) for a in args if a is not type(None))

        if expected_type is Any:
            return True

        # bool is an int subclass; keep them apart
        if expected_type in (int, float) and isinstance(value, bool):
            return False

        # Handle generic types
        if origin:
            return isinstance(value, origin)

        try:
            return isinstance(value, expected_type)
        except TypeError:
            # For complex types, skip validation
            return True

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()


def load_config(
    path: Optional[str] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientConfig:
    """Load a ``ClientConfig`` from the usual sources."""
    loader = ConfigLoader.load(
        paths=[path] if path else None,
        env_file=env_file,
        overrides=overrides,
        environ=environ,
    )
    return loader.client_config()
