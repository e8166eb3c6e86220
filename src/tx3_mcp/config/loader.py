"""Configuration loading: TOML files, env var overrides, merge logic.

Discovery order (later overrides earlier):
    1. Built-in defaults (Pydantic model defaults)
    2. User config: ``~/.config/tx3-mcp/config.toml``
    3. Project-local config: ``./tx3-mcp.toml``
    4. ``$TX3_MCP_CONFIG`` environment variable (explicit path)
    5. Explicit path passed to ``load_config``
    6. Programmatic overrides (passed to ``load_config``)

Environment variable fallbacks:
    Fields ending in ``_env`` name an env var (``TRP_URL``, ``TRP_KEY``,
    ``TX3_REGISTRY_URL``, ``ADDRESS``, ``PORT``).  If the env var is set
    *and* the matching value is not already provided, the loader
    resolves it automatically.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from tx3_mcp.core.errors import ConfigError

from .schema import Tx3McpConfig


def _user_config_path() -> Path:
    """Return XDG-compliant user config path."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "tx3-mcp" / "config.toml"


def _project_config_path() -> Path:
    """Return project-local config path."""
    return Path.cwd() / "tx3-mcp.toml"


def _discover_config_files() -> list[Path]:
    """Return config files in merge order (first = lowest priority)."""
    paths: list[Path] = []

    user = _user_config_path()
    if user.is_file():
        paths.append(user)

    project = _project_config_path()
    if project.is_file():
        paths.append(project)

    env_path = os.environ.get("TX3_MCP_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.is_file():
            msg = f"TX3_MCP_CONFIG points to non-existent file: {env_path}"
            raise ConfigError(msg)
        paths.append(p)

    return paths


def _read_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file."""
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override wins on conflicts."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _from_env(name: str | None) -> str | None:
    if not name:
        return None
    return os.environ.get(name) or None


def _resolve_env(config: Tx3McpConfig) -> None:
    """Fill unset values from their environment variables (in-place)."""
    resolver = config.resolver
    if resolver.url is None:
        resolver.url = _from_env(resolver.url_env)
    if resolver.api_key is None:
        resolver.api_key = _from_env(resolver.api_key_env)

    registry = config.registry
    if registry.url is None:
        registry.url = _from_env(registry.url_env)

    server = config.server
    if server.host is None:
        server.host = _from_env(server.host_env)
    if server.port is None:
        raw_port = _from_env(server.port_env)
        if raw_port is not None:
            try:
                server.port = int(raw_port)
            except ValueError as e:
                msg = f"{server.port_env} must be an integer port, got {raw_port!r}"
                raise ConfigError(msg) from e


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Tx3McpConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file path (highest file priority).
        overrides: Dict of overrides merged last (highest overall priority).

    Returns:
        Validated Tx3McpConfig instance.

    Raises:
        ConfigError: On invalid TOML, missing files, or validation failure.
    """
    merged: dict[str, Any] = {}

    files = _discover_config_files()

    if path is not None:
        p = Path(path)
        if not p.is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        files.append(p)

    for config_file in files:
        data = _read_toml(config_file)
        merged = _deep_merge(merged, data)

    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = Tx3McpConfig.model_validate(merged)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _resolve_env(config)

    return config
