"""Configuration models, loaded from dotted options or environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    ValidationError,
    field_validator,
)

from depgraph.exceptions import ConfigError

_DEFAULT_CACHE_DIR = Path(os.path.expanduser("~")) / ".cache" / "depgraph"

# Dotted option name -> (section, field)
_OPTION_KEYS: dict[str, tuple[str, str]] = {
    "cache.dir": ("cache", "dir"),
    "cache.maxAge": ("cache", "max_age"),
    "cache.enabled": ("cache", "enabled"),
    "scanner.maxInFlight": ("scanner", "max_in_flight"),
    "scanner.manifestPath": ("scanner", "manifest_path"),
    "remote.tokenEnvVar": ("remote", "token_env_var"),
    "remote.baseUrl": ("remote", "base_url"),
    "remote.timeout": ("remote", "timeout"),
    "analysis.includeLowRisk": ("analysis", "include_low_risk"),
}

# Environment variable -> dotted option name
_ENV_KEYS: dict[str, str] = {
    "DEPGRAPH_CACHE_DIR": "cache.dir",
    "DEPGRAPH_CACHE_MAX_AGE": "cache.maxAge",
    "DEPGRAPH_CACHE_ENABLED": "cache.enabled",
    "DEPGRAPH_SCANNER_MAX_IN_FLIGHT": "scanner.maxInFlight",
    "DEPGRAPH_MANIFEST_PATH": "scanner.manifestPath",
    "DEPGRAPH_TOKEN_ENV_VAR": "remote.tokenEnvVar",
    "DEPGRAPH_API_URL": "remote.baseUrl",
}


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dir: Path = _DEFAULT_CACHE_DIR
    max_age: timedelta = timedelta(hours=1)
    enabled: bool = True

    @field_validator("max_age", mode="before")
    @classmethod
    def _numeric_string_is_seconds(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return v
        return v


class ScannerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_in_flight: PositiveInt = 10
    manifest_path: str = "go.mod"


class RemoteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token_env_var: str = Field(default="GITHUB_TOKEN", min_length=1)
    base_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0)

    def resolve_token(self, environ: Mapping[str, str] | None = None) -> str:
        """Return the bearer token from the configured environment variable.

        Raises :class:`ConfigError` if the variable is unset or empty.
        """
        env = os.environ if environ is None else environ
        token = env.get(self.token_env_var, "").strip()
        if not token:
            raise ConfigError(f"{self.token_env_var} environment variable is not set")
        return token


class AnalysisConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_low_risk: bool = True


class DepGraphConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cache: CacheConfig = Field(default_factory=CacheConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> DepGraphConfig:
        """Build a config from dotted option names (``cache.maxAge`` etc.).

        Raises :class:`ConfigError` on unknown options or invalid values.
        """
        sections: dict[str, dict[str, Any]] = {}
        for key, value in options.items():
            target = _OPTION_KEYS.get(key)
            if target is None:
                raise ConfigError(f"unknown configuration option: {key!r}")
            section, field = target
            sections.setdefault(section, {})[field] = value
        try:
            return cls.model_validate(sections)
        except ValidationError as exc:
            raise ConfigError(f"invalid configuration: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DepGraphConfig:
        """Build a config from ``DEPGRAPH_*`` environment variables."""
        env = os.environ if environ is None else environ
        options = {dotted: env[name] for name, dotted in _ENV_KEYS.items() if env.get(name)}
        return cls.from_mapping(options)

    def merged(self, overrides: Mapping[str, Any]) -> DepGraphConfig:
        """Return a copy with dotted *overrides* applied (``None`` values skipped)."""
        current = self.model_dump()
        for key, value in overrides.items():
            if value is None:
                continue
            target = _OPTION_KEYS.get(key)
            if target is None:
                raise ConfigError(f"unknown configuration option: {key!r}")
            section, field = target
            current[section][field] = value
        try:
            return type(self).model_validate(current)
        except ValidationError as exc:
            raise ConfigError(f"invalid configuration: {exc}") from exc
