"""Configuration management for the release mirror.

Provides:
- A small ``Config`` base class that dumps its settings to dict/JSON
- ``MirrorConfig``: every knob the pipeline reads, loaded from environment
  variables with defaults that work out of the box
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional, Any


DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MAX_ASSET_MB = 50
CONSTRAINED_RELEASE_LIMIT = 2

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Raised when a configuration value is missing or malformed."""


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all public config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)


def _env_int(env: Dict[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def _env_float(env: Dict[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(env: Dict[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in _TRUE_VALUES


class MirrorConfig(Config):
    """Settings for one mirror run.

    Environment variables:
        GITHUB_TOKEN: Credential sent with every request (default: none)
        GITHUB_ORG: Organization whose repositories are mirrored.  Falls back
            to the owner part of GITHUB_REPOSITORY ("owner/repo").
        GITHUB_API_URL: API base URL (default: https://api.github.com)
        MIRROR_ROOT: Root of the mirror tree (default: current directory)
        MAX_NEW_ASSETS: New-asset quota per run, 0 = unlimited (default: 0)
        MIRROR_CONSTRAINED: "true" caps releases per repository (default: off)
        MAX_ASSET_MB: Size ceiling for mirrored assets in MB (default: 50)
        DOWNLOAD_MAX_RETRIES: Attempts per asset (default: 3)
        DOWNLOAD_BACKOFF_SECONDS: First retry delay, doubled each time (default: 1)
        HTTP_TIMEOUT_SECONDS: Per-request timeout (default: 120)
    """

    def __init__(self) -> None:
        super().__init__()
        self.token: Optional[str] = None
        self.org: Optional[str] = None
        self.api_url = DEFAULT_API_URL
        self.root = Path(".")
        self.max_new_assets = 0
        self.constrained = False
        self.max_asset_mb = DEFAULT_MAX_ASSET_MB
        self.max_retries = 3
        self.backoff_seconds = 1.0
        self.timeout_seconds = 120.0

    @property
    def max_asset_bytes(self) -> int:
        return self.max_asset_mb * 1024 * 1024

    @property
    def metadata_path(self) -> Path:
        return self.root / "repo-metadata.json"

    @property
    def packages_path(self) -> Path:
        return self.root / "packages.json"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if data.get("token"):
            data["token"] = "***"
        return data

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "MirrorConfig":
        """Create a MirrorConfig populated from environment variables.

        Raises:
            ConfigError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        config = cls()
        config.token = env.get("GITHUB_TOKEN") or None
        config.org = env.get("GITHUB_ORG") or None
        if not config.org and "/" in env.get("GITHUB_REPOSITORY", ""):
            config.org = env["GITHUB_REPOSITORY"].split("/", 1)[0]
        config.api_url = (env.get("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/")
        config.root = Path(env.get("MIRROR_ROOT") or ".")
        config.max_new_assets = _env_int(env, "MAX_NEW_ASSETS", 0)
        config.constrained = _env_bool(env, "MIRROR_CONSTRAINED")
        config.max_asset_mb = _env_int(env, "MAX_ASSET_MB", DEFAULT_MAX_ASSET_MB)
        config.max_retries = _env_int(env, "DOWNLOAD_MAX_RETRIES", 3)
        config.backoff_seconds = _env_float(env, "DOWNLOAD_BACKOFF_SECONDS", 1.0)
        config.timeout_seconds = _env_float(env, "HTTP_TIMEOUT_SECONDS", 120.0)
        return config

    def validate(self, require_org: bool = True) -> None:
        """Raise ConfigError if the settings cannot drive a sync run."""
        if require_org and not self.org:
            raise ConfigError(
                "No organization configured: set GITHUB_ORG or pass --org"
            )
        if self.max_retries < 1:
            raise ConfigError("DOWNLOAD_MAX_RETRIES must be at least 1")
