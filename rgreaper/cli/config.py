"""Configuration loading.

Values are merged in increasing precedence: defaults, YAML config file,
environment variables, then explicit CLI overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from rgreaper.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".rgreaper" / "config.yaml"

# Environment variable -> config field
ENV_VARS = {
    "RGREAPER_SUBSCRIPTIONS": "subscriptions",
    "RGREAPER_RESOURCE_GROUP_PREFIX": "resource_group_prefix",
    "RGREAPER_RESOURCE_GROUP_SUFFIX": "resource_group_suffix",
    "RGREAPER_DEFAULT_EXPIRATION_DAYS": "default_expiration_days",
    "RGREAPER_EXPIRATION_TAG": "expiration_tag_name",
    "RGREAPER_MARKER_TAG": "marker_tag_name",
    "RGREAPER_PINNED_TAG": "pinned_tag_name",
    "RGREAPER_DRY_RUN": "dry_run",
    "RGREAPER_LOG_LEVEL": "log_level",
    "AZURE_TENANT_ID": "tenant_id",
    "AZURE_CLIENT_ID": "client_id",
    "AZURE_CLIENT_SECRET": "client_secret",
}

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Reaper configuration.

    Attributes:
        subscriptions: Subscription IDs to process, in order
        all_subscriptions: Process every enabled subscription visible to the credential
        resource_group_prefix: Name strategy prefix (empty disables the strategy)
        resource_group_suffix: Name strategy suffix (empty matches any ending)
        default_expiration_days: Lifetime used when the expiration tag is missing or invalid
        expiration_tag_name: Tag holding the per-entity lifetime in days
        marker_tag_name: Tag flagging an entity as managed by the reaper
        pinned_tag_name: Tag that exempts an entity from deletion
        dry_run: Report intended deletions without performing them
        max_workers: Concurrent deletion calls
        max_retries: Attempts per deletion
        wait_for_completion: Block until each deletion finishes
        tenant_id: Service principal tenant (optional)
        client_id: Service principal client ID (optional)
        client_secret: Service principal secret (optional)
        log_level: Log level name
    """

    subscriptions: list[str] = field(default_factory=list)
    all_subscriptions: bool = False
    resource_group_prefix: str = ""
    resource_group_suffix: str = ""
    default_expiration_days: int = 3
    expiration_tag_name: str = "days"
    marker_tag_name: str = "ttl-managed"
    pinned_tag_name: str = "pinned"
    dry_run: bool = True
    max_workers: int = 1
    max_retries: int = 3
    wait_for_completion: bool = False
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
        """Load configuration from a YAML file and the environment.

        Args:
            config_file: Path to a YAML config file (default: ~/.rgreaper/config.yaml if present)
            environ: Environment mapping (default: os.environ)

        Returns:
            Config instance

        Raises:
            ConfigError: If the file cannot be read or a value is invalid
        """
        config = cls()
        config.apply(cls._read_file(config_file))
        config.apply(cls._read_env(os.environ if environ is None else environ))
        return config

    @staticmethod
    def _read_file(config_file: Optional[str]) -> dict[str, Any]:
        if config_file:
            path = Path(config_file).expanduser()
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
        else:
            path = DEFAULT_CONFIG_PATH
            if not path.exists():
                return {}

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        logger.debug(f"Loaded configuration from {path}")
        return data

    @staticmethod
    def _read_env(environ: Mapping[str, str]) -> dict[str, Any]:
        values = {}
        for env_var, field_name in ENV_VARS.items():
            if environ.get(env_var):
                values[field_name] = environ[env_var]
        return values

    def apply(self, values: Mapping[str, Any]) -> Config:
        """Apply overrides, skipping None values.

        Raises:
            ConfigError: If a key is unknown or a value has the wrong type
        """
        known = {f.name: f for f in fields(self)}
        for key, value in values.items():
            if value is None:
                continue
            if key not in known:
                raise ConfigError(f"Unknown configuration option: {key}")
            setattr(self, key, self._coerce(key, known[key].default, value))
        return self

    def _coerce(self, key: str, default: Any, value: Any) -> Any:
        if key == "subscriptions":
            if isinstance(value, str):
                return [item.strip() for item in value.split(",") if item.strip()]
            if isinstance(value, (list, tuple)):
                return [str(item).strip() for item in value if str(item).strip()]
            raise ConfigError("subscriptions must be a list or a comma-separated string")

        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in TRUE_VALUES:
                return True
            if text in FALSE_VALUES:
                return False
            raise ConfigError(f"{key} must be a boolean, got '{value}'")

        if isinstance(default, int):
            if isinstance(value, bool):
                raise ConfigError(f"{key} must be an integer, got '{value}'")
            try:
                return int(str(value).strip())
            except ValueError as e:
                raise ConfigError(f"{key} must be an integer, got '{value}'") from e

        return str(value)

    def validate(self) -> bool:
        """Validate configuration invariants.

        Returns:
            True if validation passes

        Raises:
            ConfigError: If any validation rule fails
        """
        if not self.subscriptions and not self.all_subscriptions:
            raise ConfigError("No subscriptions configured. Use --subscription or --all-subscriptions")

        for name in ("expiration_tag_name", "marker_tag_name", "pinned_tag_name"):
            if not getattr(self, name):
                raise ConfigError(f"{name} cannot be empty")

        if len({self.expiration_tag_name, self.marker_tag_name, self.pinned_tag_name}) != 3:
            raise ConfigError("Expiration, marker and pinned tag names must be distinct")

        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")

        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level}")

        return True
