"""Client configuration and profile loading.

Profiles (endpoint plus credentials) come from two sources:
1. Environment variables (for CI/CD) - takes priority
2. A JSON file (for local development)

Environment Variable Format:
    OSS_PROFILE_{KEY}=Endpoint|Style
    {KEY}_ACCESS_KEY_ID=xxx
    {KEY}_ACCESS_KEY_SECRET=xxx
    {KEY}_SESSION_TOKEN=xxx      (optional)

Style is one of ``virtual``, ``path`` or ``cname``.

Example:
    OSS_PROFILE_HZ=oss-cn-hangzhou.aliyuncs.com|virtual
    HZ_ACCESS_KEY_ID=your-access-key-id
    HZ_ACCESS_KEY_SECRET=your-access-key-secret
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ossclient import __version__
from ossclient.models import ClientProfile
from ossclient.retry import DefaultRetryStrategy, RetryStrategy


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


# Required fields for a profile in the JSON file
REQUIRED_FIELDS = [
    "endpoint",
    "access_key_id",
    "access_key_secret",
]

ADDRESSING_STYLES = ("virtual", "path", "cname")

ENV_PROFILE_PREFIX = "OSS_PROFILE_"


def default_user_agent() -> str:
    return f"ossclient-python/{__version__}"


@dataclass
class ClientConfiguration:
    """Transport and pipeline settings, read-only once a client is built."""

    user_agent: str = field(default_factory=default_user_agent)
    scheme: str = "http"
    max_connections: int = 16
    request_timeout_ms: int = 10000
    connect_timeout_ms: int = 5000
    retry_strategy: RetryStrategy = field(default_factory=DefaultRetryStrategy)
    proxy: Optional[str] = None
    verify_ssl: bool = True
    is_cname: bool = False
    path_style: bool = False
    enable_crc64: bool = True


def _validate_style(style: str, key: str) -> str:
    if style not in ADDRESSING_STYLES:
        raise ConfigError(
            f"Invalid addressing style '{style}' for profile '{key}'. "
            f"Expected one of: {', '.join(ADDRESSING_STYLES)}"
        )
    return style


def load_from_json(config_path: str) -> dict[str, ClientProfile]:
    """Load profiles from a JSON file.

    Args:
        config_path: Path to the JSON file.

    Returns:
        Dictionary mapping profile keys to ClientProfile objects.
        Only enabled profiles are included.

    Raises:
        ConfigError: If file doesn't exist, contains invalid JSON,
                    or is missing required fields.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    profiles: dict[str, ClientProfile] = {}

    for key, config in data.items():
        # Skip disabled profiles
        if not config.get("enabled", True):
            continue

        for required in REQUIRED_FIELDS:
            if required not in config:
                raise ConfigError(
                    f"Missing required field '{required}' for profile '{key}'"
                )

        profiles[key] = ClientProfile(
            key=key,
            endpoint=config["endpoint"],
            access_key_id=config["access_key_id"],
            access_key_secret=config["access_key_secret"],
            session_token=config.get("session_token", ""),
            addressing_style=_validate_style(
                config.get("addressing_style", "virtual"), key
            ),
            enabled=True,
        )

    return profiles


def load_from_env() -> dict[str, ClientProfile]:
    """Load profiles from environment variables.

    Discovers profiles by looking for OSS_PROFILE_* environment variables.
    For each profile, expects corresponding credential variables.

    Returns:
        Dictionary mapping profile keys to ClientProfile objects.

    Raises:
        ConfigError: If environment variables are malformed or
                    required credential variables are missing.
    """
    profiles: dict[str, ClientProfile] = {}

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(ENV_PROFILE_PREFIX):
            continue

        # "OSS_PROFILE_HZ" -> "HZ"
        profile_key = env_key[len(ENV_PROFILE_PREFIX):]

        parts = env_value.split("|")
        if len(parts) != 2:
            raise ConfigError(
                f"Invalid format for {env_key}. Expected: Endpoint|Style"
            )

        endpoint, style = parts

        id_var = f"{profile_key}_ACCESS_KEY_ID"
        secret_var = f"{profile_key}_ACCESS_KEY_SECRET"

        access_key_id = os.environ.get(id_var)
        if not access_key_id:
            raise ConfigError(f"Missing environment variable: {id_var}")

        access_key_secret = os.environ.get(secret_var)
        if not access_key_secret:
            raise ConfigError(f"Missing environment variable: {secret_var}")

        profiles[profile_key] = ClientProfile(
            key=profile_key,
            endpoint=endpoint,
            access_key_id=access_key_id,
            access_key_secret=access_key_secret,
            session_token=os.environ.get(f"{profile_key}_SESSION_TOKEN", ""),
            addressing_style=_validate_style(style, profile_key),
            enabled=True,
        )

    return profiles


def has_env_profiles() -> bool:
    """Check if any OSS_PROFILE_* environment variables exist."""
    return any(key.startswith(ENV_PROFILE_PREFIX) for key in os.environ)


def load_profiles(config_path: str = "oss.json") -> dict[str, ClientProfile]:
    """Load profiles with environment priority.

    Priority order:
    1. Environment variables (if any OSS_PROFILE_* vars exist)
    2. The JSON file

    Args:
        config_path: Path to the JSON file (used as fallback).

    Returns:
        Dictionary mapping profile keys to ClientProfile objects.

    Raises:
        ConfigError: If no profiles are configured or all are disabled.
    """
    profiles: dict[str, ClientProfile] = {}

    if has_env_profiles():
        profiles = load_from_env()
    elif Path(config_path).exists():
        profiles = load_from_json(config_path)

    if not profiles:
        raise ConfigError(
            "No profiles configured. Set OSS_PROFILE_* environment variables "
            f"or create {config_path} with at least one enabled profile."
        )

    return profiles
