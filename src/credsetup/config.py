"""Configuration loader for credsetup.

Loads from credsetup.toml with sensible defaults when the file is absent.
Configuration is loaded once at startup and passed via dependency injection.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILENAME = "credsetup.toml"
ACCESS_KEY_ENV = "CREDSETUP_ACCESS_KEY"

_ENV_REF_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass(frozen=True)
class DashboardConfig:
    base_url: str = "https://api.serverless.com/core"
    app_url: str = "https://app.serverless.com"
    access_key: str = ""
    timeout_seconds: float = 30.0

    def providers_url(self, org_name: str) -> str:
        return f"{self.app_url.rstrip('/')}/{org_name}/settings/providers?source=cli"

    def __repr__(self) -> str:
        key_display = f"***{self.access_key[-4:]}" if self.access_key else ""
        return (
            f"DashboardConfig(base_url={self.base_url!r}, app_url={self.app_url!r}, "
            f"access_key={key_display!r}, timeout_seconds={self.timeout_seconds!r})"
        )


@dataclass(frozen=True)
class SetupConfig:
    provider_wait_seconds: float = 60.0
    default_region: str = "us-east-1"
    docs_url: str = "http://slss.io/aws-creds-setup"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "WARNING"


@dataclass(frozen=True)
class Config:
    """Top-level credsetup configuration."""

    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    setup: SetupConfig = field(default_factory=SetupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config_paths() -> list[Path]:
    return [
        Path.cwd() / CONFIG_FILENAME,
        Path.home() / ".credsetup" / CONFIG_FILENAME,
    ]


def _positive_float(value: object, default: float) -> float:
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _env_reference(value: str) -> str | None:
    """Return the variable named by ``${NAME}`` or ``env://NAME``, else None."""
    match = _ENV_REF_RE.match(value)
    if match is not None:
        return match.group(1)
    if value.lower().startswith("env://"):
        name = value[len("env://"):].strip("/ ")
        if not name:
            raise ConfigError(f"Invalid env reference {value!r}: missing variable name")
        return name
    return None


def _resolve_access_key(raw: object, environ: Mapping[str, str] | None) -> str:
    env = os.environ if environ is None else environ
    value = str(raw or "").strip()
    if not value:
        return env.get(ACCESS_KEY_ENV, "").strip()
    name = _env_reference(value)
    if name is None:
        return value
    resolved = env.get(name)
    if resolved is None:
        raise ConfigError(
            f"Cannot resolve dashboard access_key {value!r}: "
            f"missing env var {name!r}"
        )
    return resolved.strip()


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from a TOML file.

    If path is None, searches for credsetup.toml in the current directory
    then ~/.credsetup/. Returns default config if no file is found; the
    access key still falls back to ``CREDSETUP_ACCESS_KEY``.
    """
    if path is None:
        for candidate in default_config_paths():
            if candidate.exists():
                path = candidate
                break

    raw: dict = {}
    if path is not None and path.exists():
        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e

    dash_data = raw.get("dashboard", {})
    defaults = DashboardConfig()
    dashboard = DashboardConfig(
        base_url=str(dash_data.get("base_url", defaults.base_url)),
        app_url=str(dash_data.get("app_url", defaults.app_url)),
        access_key=_resolve_access_key(dash_data.get("access_key", ""), environ),
        timeout_seconds=_positive_float(
            dash_data.get("timeout_seconds"), defaults.timeout_seconds,
        ),
    )

    setup_data = raw.get("setup", {})
    setup_defaults = SetupConfig()
    setup = SetupConfig(
        provider_wait_seconds=_positive_float(
            setup_data.get("provider_wait_seconds"),
            setup_defaults.provider_wait_seconds,
        ),
        default_region=str(
            setup_data.get("default_region", setup_defaults.default_region)
        ),
        docs_url=str(setup_data.get("docs_url", setup_defaults.docs_url)),
    )

    log_data = raw.get("logging", {})
    logging_cfg = LoggingConfig(
        level=str(log_data.get("level", "WARNING")).upper(),
    )

    return Config(dashboard=dashboard, setup=setup, logging=logging_cfg)
