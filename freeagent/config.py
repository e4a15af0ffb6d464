"""Configuration file management for freeagent."""

import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from freeagent.api.auth import MAX_CLIENT_SECRETS
from freeagent.api.client import ClientSettings
from freeagent.api.codec import MEDIA_TYPES
from freeagent.api.errors import ConfigError
from freeagent.api.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE
from freeagent.dates import parse_date

DEFAULT_PROFILE = "default"


def get_xdg_config_home() -> Path:
    """Get XDG config directory, with fallback to ~/.config."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def get_config_path() -> Path:
    """Get the config file path (XDG compliant).

    Returns:
        Path to the config file.
    """
    return get_xdg_config_home() / "freeagent" / "config.toml"


def create_default_config(config_path: Path | None = None) -> None:
    """Create default config file with secure permissions.

    Args:
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    default_config: dict[str, Any] = {
        "profiles": [
            {
                "name": DEFAULT_PROFILE,
                "client_id": "",
                "client_secrets": [],
                "sandbox": True,
                "format": "json",
                "per_page": DEFAULT_PER_PAGE,
            }
        ],
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(default_config, f)

    os.chmod(config_path, 0o600)


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
    """
    if config_path is None:
        config_path = get_config_path()

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def save_config(config: dict[str, Any], config_path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to config file. If None, uses default location.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(config_path, 0o600)


def get_profile(name: str, config_path: Path | None = None) -> dict[str, Any] | None:
    """Get a profile configuration by name.

    Args:
        name: Profile name.
        config_path: Path to config file. If None, uses default location.

    Returns:
        Profile configuration dictionary or None if not found.
    """
    config = load_config(config_path)

    profiles = config.get("profiles", [])
    for profile in profiles:
        if isinstance(profile, dict) and profile.get("name") == name:
            return profile

    return None


def add_profile(profile: dict[str, Any], config_path: Path | None = None) -> None:
    """Add or update a profile configuration.

    Args:
        profile: Profile configuration dictionary.
        config_path: Path to config file. If None, uses default location.
    """
    config = load_config(config_path)

    profiles = config.get("profiles", [])
    profile_name = profile.get("name")

    for i, existing_profile in enumerate(profiles):
        if existing_profile.get("name") == profile_name:
            profiles[i] = profile
            break
    else:
        profiles.append(profile)

    config["profiles"] = profiles
    save_config(config, config_path)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def resolve_settings(name: str = DEFAULT_PROFILE, config_path: Path | None = None) -> ClientSettings:
    """Build client settings from a profile and environment overrides.

    ``FREEAGENT_CLIENT_ID``, ``FREEAGENT_CLIENT_SECRET``,
    ``FREEAGENT_REFRESH_TOKEN`` and ``FREEAGENT_SANDBOX`` take precedence
    over the config file. A missing config file is fine when the
    environment supplies the credentials.

    Raises:
        ConfigError: If credentials are missing or a value is invalid.
    """
    try:
        profile = get_profile(name, config_path) or {}
    except FileNotFoundError:
        profile = {}
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Config file is not valid TOML: {e}") from e

    client_id = os.environ.get("FREEAGENT_CLIENT_ID") or profile.get("client_id") or ""
    secrets = profile.get("client_secrets") or []
    if isinstance(secrets, str):
        secrets = [secrets]
    env_secret = os.environ.get("FREEAGENT_CLIENT_SECRET")
    if env_secret:
        secrets = [env_secret]

    if not client_id:
        raise ConfigError(f"Profile '{name}' has no client_id. Edit {config_path or get_config_path()}.")
    if not secrets:
        raise ConfigError(f"Profile '{name}' has no client_secrets.")
    if len(secrets) > MAX_CLIENT_SECRETS:
        raise ConfigError(
            f"Profile '{name}' lists {len(secrets)} client secrets; at most {MAX_CLIENT_SECRETS} may be active"
        )

    sandbox = bool(profile.get("sandbox", False))
    env_sandbox = os.environ.get("FREEAGENT_SANDBOX")
    if env_sandbox is not None:
        sandbox = _env_flag(env_sandbox)

    fmt = profile.get("format", "json")
    if fmt not in MEDIA_TYPES:
        raise ConfigError(f"Profile '{name}' has unsupported format '{fmt}'")

    per_page = profile.get("per_page", DEFAULT_PER_PAGE)
    if not isinstance(per_page, int) or not 1 <= per_page <= MAX_PER_PAGE:
        raise ConfigError(f"Profile '{name}' per_page must be between 1 and {MAX_PER_PAGE}")

    api_version = profile.get("api_version")
    if api_version is not None and not hasattr(api_version, "year"):
        try:
            api_version = parse_date(str(api_version))
        except ValueError as e:
            raise ConfigError(f"Profile '{name}' api_version must be a date (YYYY-MM-DD)") from e

    settings = ClientSettings(
        client_id=client_id,
        client_secrets=[str(secret) for secret in secrets],
        profile=name,
        sandbox=sandbox,
        api_version=api_version,
        format=fmt,
        per_page=per_page,
        refresh_token=os.environ.get("FREEAGENT_REFRESH_TOKEN") or profile.get("refresh_token"),
    )
    if profile.get("redirect_uri"):
        settings.redirect_uri = profile["redirect_uri"]
    return settings
