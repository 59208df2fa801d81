"""Configuration loading and Pydantic models for the upload proxy."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ALLOWED_BUCKET = "audio-uploads"


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000
    route_prefix: str = "/api/upload"
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: int = 30


class UpstreamConfig(BaseModel):
    """Object storage backend and service credential.

    ``allowed_bucket`` restricts writes to a single bucket; an empty string
    lets every bucket through.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = ""
    service_key: str = ""
    allowed_bucket: str = DEFAULT_ALLOWED_BUCKET

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.service_key)


class ObservabilityConfig(BaseModel):
    """Metrics and health check toggles."""

    model_config = ConfigDict(frozen=True)

    metrics: bool = True
    health_check: bool = True


class ProxyConfig(BaseModel):
    """Top-level upload proxy configuration."""

    model_config = ConfigDict(frozen=True)

    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# Environment variable -> upstream field
_ENV_VARS = {
    "SUPABASE_URL": "base_url",
    "SUPABASE_SERVICE_ROLE_KEY": "service_key",
    "ALLOWED_BUCKET": "allowed_bucket",
}


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "host": data.get("host", "0.0.0.0"),
        "port": data.get("port", 3000),
        "route_prefix": data.get("route_prefix", "/api/upload"),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
        "shutdown_timeout": data.get("shutdown_timeout", 30),
    }


def _parse_upstream(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the upstream section from YAML data.

    A ``null`` allowed_bucket is treated as an empty string (allow all).
    """
    if data is None:
        return {}
    allowed = data.get("allowed_bucket", DEFAULT_ALLOWED_BUCKET)
    return {
        "base_url": data.get("base_url") or "",
        "service_key": data.get("service_key") or "",
        "allowed_bucket": allowed or "",
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", True),
        "health_check": data.get("health_check", True),
    }


def load_config(path: Path) -> ProxyConfig:
    """Load a ProxyConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated ProxyConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return ProxyConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        upstream=UpstreamConfig(**_parse_upstream(raw.get("upstream"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )


def config_from_env(
    environ: Mapping[str, str] | None = None,
    base: ProxyConfig | None = None,
) -> ProxyConfig:
    """Overlay upstream settings from environment variables onto ``base``.

    Unset or empty variables keep the value already in ``base``, so an empty
    ``ALLOWED_BUCKET`` falls back to the configured (default) bucket.

    Args:
        environ: Variables to read. Defaults to ``os.environ``.
        base: Config to start from. Defaults to ``ProxyConfig()``.

    Returns:
        A new ProxyConfig; ``base`` is left untouched.
    """
    if environ is None:
        environ = os.environ
    if base is None:
        base = ProxyConfig()

    updates = {field: environ[var] for var, field in _ENV_VARS.items() if environ.get(var)}
    if not updates:
        return base
    return base.model_copy(update={"upstream": base.upstream.model_copy(update=updates)})
