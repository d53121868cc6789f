"""Shared configuration loader for the Siotchain console."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".siot-console.yaml"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8800
DEFAULT_NETWORK_ID = 1
DEFAULT_TIMEOUT = 30.0


@dataclass
class RPCConfig:
    """Connection details for a Siotchain node's HTTP JSON-RPC endpoint."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    use_https: bool = False
    network_id: int = DEFAULT_NETWORK_ID
    user: str | None = None
    password: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.user and self.password:
            return self.user, self.password
        return None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with an 'rpc' section")
    return loaded


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, source: str, label: str = "port") -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {label} in {source}: {raw}") from exc


def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}")
    return value


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    if not raw:
        return None, None, None
    parsed = urlparse(raw)
    if not parsed.scheme and not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    host = parsed.hostname or None
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in RPC endpoint URL: {raw}") from exc
    use_https = parsed.scheme.lower() == "https" if parsed.scheme else None
    return host, port, use_https


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load RPC configuration from overrides, environment variables and optional YAML.

    ``overrides`` carries values given on the command line; ``None`` entries are
    ignored so that unset flags fall through to the environment and the file.
    """

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH

    file_config = _load_config_file(path, required=config_path is not None)
    rpc_section = file_config.get("rpc", {}) or {}
    if not isinstance(rpc_section, dict):
        raise ConfigurationError(f"Expected 'rpc' to be a mapping in {path}")

    override_map = dict(overrides or {})

    env_endpoint = env_map.get("SIOT_RPC_ENDPOINT") or env_map.get("SIOT_RPC_URL")
    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(override_map.get("endpoint"), env_endpoint, rpc_section.get("endpoint"))
    )

    resolved_host = _first_value(
        override_map.get("host"),
        endpoint_host,
        env_map.get("SIOT_RPC_HOST"),
        rpc_section.get("host"),
        DEFAULT_HOST,
    )
    resolved_port = _first_value(
        _coerce_int(override_map.get("port"), source="overrides"),
        endpoint_port,
        _coerce_int(env_map.get("SIOT_RPC_PORT"), source="environment"),
        _coerce_int(rpc_section.get("port"), source=f"{path} rpc.port"),
        DEFAULT_PORT,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        _coerce_bool(env_map.get("SIOT_RPC_USE_HTTPS")),
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )
    resolved_network_id = _first_value(
        _coerce_int(override_map.get("network_id"), source="overrides", label="network id"),
        _coerce_int(env_map.get("SIOT_NETWORK_ID"), source="environment", label="network id"),
        _coerce_int(
            rpc_section.get("network_id"), source=f"{path} rpc.network_id", label="network id"
        ),
        DEFAULT_NETWORK_ID,
    )
    resolved_timeout = _first_value(
        _coerce_timeout(override_map.get("timeout"), source="overrides"),
        _coerce_timeout(env_map.get("SIOT_RPC_TIMEOUT"), source="environment"),
        _coerce_timeout(rpc_section.get("timeout"), source=f"{path} rpc.timeout"),
        DEFAULT_TIMEOUT,
    )
    resolved_user = _first_value(
        override_map.get("user"), env_map.get("SIOT_RPC_USER"), rpc_section.get("user")
    )
    resolved_password = _first_value(
        override_map.get("password"),
        env_map.get("SIOT_RPC_PASSWORD"),
        rpc_section.get("password"),
    )
    if bool(resolved_user) != bool(resolved_password):
        raise ConfigurationError("RPC user and password must be provided together")

    if not 0 < resolved_port < 65536:
        raise ConfigurationError(f"RPC port out of range: {resolved_port}")

    return RPCConfig(
        host=resolved_host,
        port=resolved_port,
        use_https=bool(resolved_use_https),
        network_id=resolved_network_id,
        user=resolved_user,
        password=resolved_password,
        timeout=resolved_timeout,
    )


def load_password_list(path: str | Path | None) -> list[str]:
    """Read one password per line from ``path`` for non-interactive unlocking."""

    if not path:
        return []
    try:
        text = Path(path).expanduser().read_text()
    except OSError as exc:
        raise ConfigurationError(f"Failed to read password file: {exc}") from exc
    # DOS line endings are tolerated.
    return [line.rstrip("\r") for line in text.split("\n")]
