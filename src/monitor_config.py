#!/usr/bin/env python3
"""
Configuration for the Raft ops monitor
JSON config file with environment variable overrides
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/ops_monitor.json"

# env var -> config field
ENV_OVERRIDES = {
    "OPS_MONITOR_ENABLED": "enabled",
    "OPS_MONITOR_RETRY": "max_retries",
    "OPS_MONITOR_PROBE_INTERVAL": "probe_interval",
    "OPS_MONITOR_POLL_INTERVAL": "poll_interval",
    "OPS_MONITOR_REQUEST_TIMEOUT": "request_timeout",
    "SERVER_HOST": "server_host",
    "SERVER_PORT": "server_port",
    "OPS_MONITOR_INSTANCE_PATH": "instance_path",
    "OPS_MONITOR_READINESS_PATH": "readiness_path",
    "NODE_HOME": "node_home",
    "NODE_AUTH_IDENTITY_KEY": "identity_key",
    "NODE_AUTH_IDENTITY_VALUE": "identity_value",
    "OPS_MONITOR_USER_AGENT": "user_agent",
    "OPS_MONITOR_METRICS_PORT": "metrics_port",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used"""


def _default_node_home() -> str:
    return str(Path.home() / "nacos")


@dataclass
class AuthIdentity:
    """Server identity header pair sent with every probe request"""
    key: str = ""
    value: str = ""

    def headers(self) -> Dict[str, str]:
        if not self.key or not self.key.strip():
            return {}
        return {self.key: self.value}


@dataclass
class OpsMonitorConfig:
    """Settings for one ops monitor"""
    enabled: bool = False
    max_retries: int = 20
    probe_interval: float = 3.0
    poll_interval: float = 1.0
    request_timeout: float = 10.0

    server_host: str = "localhost"
    server_port: int = 8848
    instance_path: str = "/nacos/v1/ns/instance"
    readiness_path: str = "/nacos/v1/console/health/readiness"

    node_home: str = field(default_factory=_default_node_home)

    identity_key: str = ""
    identity_value: str = ""
    user_agent: str = "Nacos-Server:2.3.2"

    metrics_port: int = 0

    def __post_init__(self):
        self.validate()

    @property
    def base_url(self) -> str:
        return f"http://{self.server_host}:{self.server_port}"

    @property
    def instance_url(self) -> str:
        return self.base_url + self.instance_path

    @property
    def readiness_url(self) -> str:
        return self.base_url + self.readiness_path

    @property
    def auth_identity(self) -> AuthIdentity:
        return AuthIdentity(self.identity_key, self.identity_value)

    def validate(self):
        """Reject values the monitor cannot run with"""
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        for name in ("probe_interval", "poll_interval", "request_timeout"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        for name in ("server_port", "metrics_port"):
            port = getattr(self, name)
            if not 0 <= port <= 65535:
                raise ConfigError(f"{name} out of range: {port}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpsMonitorConfig":
        """Build a config from raw (string or typed) values, ignoring unknown keys"""
        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, raw in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown ops monitor setting '{key}'")
                continue
            if raw is None:
                # null keeps the default
                continue
            kwargs[key] = _coerce(key, raw, known[key].type)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, base: Optional[Dict[str, Any]] = None) -> "OpsMonitorConfig":
        """Build a config from `base` overridden by environment variables"""
        data = dict(base or {})
        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is not None:
                data[field_name] = value
        return cls.from_dict(data)


def _coerce(name: str, raw: Any, annotation: Any) -> Any:
    type_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")
    try:
        if type_name == "bool":
            return _parse_bool(raw)
        if type_name == "int":
            if isinstance(raw, bool):
                raise ValueError("boolean is not a number")
            return int(raw)
        if type_name == "float":
            return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r} ({e})") from e
    return str(raw)


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError("expected true/false")


def _load_file(config_path: str) -> Dict[str, Any]:
    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found, using defaults")
        return {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {config_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")
    return data


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> OpsMonitorConfig:
    """Load ops monitor configuration from file and environment"""
    return OpsMonitorConfig.from_env(_load_file(config_path))
