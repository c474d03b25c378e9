#!/usr/bin/env python3
"""
ServiceNow reporting settings
servicenow_reporting.yaml 로드 및 검증 (암호화 값은 SecretResolver로 복호화)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml

from servicenow_reporting.config.constants import INCIDENT_CONDITIONS, TIMEOUTS, get_path
from servicenow_reporting.core.error_handler import ConfigError
from servicenow_reporting.core.secret_resolver import SecretResolver
from servicenow_reporting.utils.unified_logger import get_logger

logger = get_logger(__name__)

# Settings fields copied as opaque strings
PASSTHROUGH_FIELDS = (
    "pe_console_url",
    "caller",
    "category",
    "contact_type",
    "state",
    "impact",
    "urgency",
    "assignment_group",
    "assigned_to",
    "instance",
    "user",
)

# Settings fields run through the SecretResolver
SECRET_FIELDS = ("password", "oauth_token")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def _as_timeout(name: str, value: Any, default: int) -> float:
    if value is None or value == "":
        return float(default)
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number of seconds, got {value!r}")
    if timeout <= 0:
        raise ConfigError(f"{name} must be positive, got {value!r}")
    return timeout


def _parse_conditions(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError("incident_creation_conditions must be a list of trigger names")

    conditions = []
    for item in value:
        name = str(item).strip()
        if name not in INCIDENT_CONDITIONS:
            raise ConfigError(
                f"Unknown incident creation condition '{name}' (expected one of: {', '.join(INCIDENT_CONDITIONS)})"
            )
        if name not in conditions:
            conditions.append(name)
    return tuple(conditions)


@dataclass(frozen=True)
class Settings:
    """Validated settings for a single report run"""

    pe_console_url: str
    instance: str
    caller: str = ""
    category: str = ""
    contact_type: str = ""
    state: str = ""
    impact: str = ""
    urgency: str = ""
    assignment_group: str = ""
    assigned_to: str = ""
    user: str = ""
    password: str = field(default="", repr=False)
    oauth_token: str = field(default="", repr=False)
    incident_creation_conditions: Tuple[str, ...] = ()
    skip_certificate_validation: bool = False
    http_open_timeout: float = float(TIMEOUTS["HTTP_OPEN"])
    http_read_timeout: float = float(TIMEOUTS["HTTP_READ"])

    @property
    def uses_oauth(self) -> bool:
        return bool(self.oauth_token)

    @property
    def uses_basic_auth(self) -> bool:
        return bool(self.user and self.password)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], resolver: Optional[SecretResolver] = None) -> "Settings":
        """
        Build Settings from an already-parsed mapping

        Args:
            data: Raw settings mapping (as read from YAML)
            resolver: SecretResolver for password/oauth_token (a fresh one by default)

        Returns:
            Validated Settings

        Raises:
            ConfigError: required fields missing or a secret cannot be decrypted
        """
        if not isinstance(data, dict):
            raise ConfigError("ServiceNow reporting settings must be a mapping")

        resolver = resolver or SecretResolver()

        values = {name: _as_text(data.get(name)).strip() for name in PASSTHROUGH_FIELDS}
        for name in SECRET_FIELDS:
            values[name] = _as_text(resolver.resolve(data.get(name)))

        missing = [name for name in ("pe_console_url", "instance") if not values[name]]
        if missing:
            raise ConfigError(f"ServiceNow reporting settings missing required fields: {', '.join(missing)}")

        if not values["oauth_token"] and not (values["user"] and values["password"]):
            raise ConfigError("ServiceNow reporting settings need either user and password, or oauth_token")

        return cls(
            incident_creation_conditions=_parse_conditions(data.get("incident_creation_conditions")),
            skip_certificate_validation=_as_bool(data.get("skip_certificate_validation", False)),
            http_open_timeout=_as_timeout("http_open_timeout", data.get("http_open_timeout"), TIMEOUTS["HTTP_OPEN"]),
            http_read_timeout=_as_timeout("http_read_timeout", data.get("http_read_timeout"), TIMEOUTS["HTTP_READ"]),
            **values,
        )


def load_settings(path: str = None, resolver: Optional[SecretResolver] = None) -> Settings:
    """
    servicenow_reporting.yaml 로드

    Args:
        path: Settings file (SERVICENOW_REPORTING_CONFIG or the Puppet confdir by default)
        resolver: SecretResolver used for encrypted values

    Returns:
        Validated Settings
    """
    path = path or get_path("SETTINGS_FILE")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"ServiceNow reporting settings file not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load ServiceNow reporting settings {path}: {e}") from e

    settings = Settings.from_dict(data, resolver)
    logger.debug(f"Loaded ServiceNow reporting settings from {path}")
    return settings
