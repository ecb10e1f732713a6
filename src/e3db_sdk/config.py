"""Local client profile storage.

Profiles are JSON files under the config root (``~/.tozny`` unless
``E3DB_CONFIG_DIR`` is set):

- default profile: ``<root>/e3db.json``
- named profile:   ``<root>/<name>/e3db.json``
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import ValidationError

from e3db_sdk.errors import ConfigError, ProfileExistsError
from e3db_sdk.models import DEFAULT_API_URL, ClientConfig, RegistrationInfo

CONFIG_DIR_ENV_VAR = "E3DB_CONFIG_DIR"
API_URL_ENV_VAR = "E3DB_API_URL"
CONFIG_FILENAME = "e3db.json"


def config_root() -> Path:
    env_root = os.getenv(CONFIG_DIR_ENV_VAR)
    if env_root and env_root.strip():
        return Path(env_root.strip())
    return Path.home() / ".tozny"


def _validate_profile_name(profile: str) -> None:
    if profile.startswith(".") or "/" in profile or "\\" in profile:
        raise ConfigError(f"invalid profile name: {profile!r}")


def profile_path(profile: str = "") -> Path:
    if not profile:
        return config_root() / CONFIG_FILENAME
    _validate_profile_name(profile)
    return config_root() / profile / CONFIG_FILENAME


def api_url(configured: str = DEFAULT_API_URL) -> str:
    env_api_url = os.getenv(API_URL_ENV_VAR)
    if env_api_url and env_api_url.strip():
        return env_api_url.strip()
    return configured


def profile_display_name(profile: str) -> str:
    return profile if profile else "(default)"


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def profile_exists(profile: str = "") -> bool:
    return profile_path(profile).exists()


def get_config(profile: str = "") -> ClientConfig:
    path = profile_path(profile)
    if not path.exists():
        raise ConfigError(f"profile {profile_display_name(profile)} not found: {path}")

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise ConfigError(f"invalid profile file: {path}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"profile file must contain a JSON object: {path}")

    try:
        config = ClientConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid profile file: {path}: {exc.error_count()} field error(s)") from exc

    config.api_url = api_url(config.api_url)
    if not config.api_url:
        raise ConfigError("api_url must not be empty")
    return config


def save_config(profile: str, info: RegistrationInfo) -> Path:
    """Persist registration credentials, refusing to replace an existing profile.

    The file is opened create-only, so a profile that appeared after any
    earlier existence check still raises ``ProfileExistsError`` here.
    """
    path = profile_path(profile)
    config = ClientConfig.from_registration(info)
    serialized = json.dumps(config.model_dump(exclude={"logging"}), indent=2) + "\n"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError as exc:
        raise ProfileExistsError(
            f"profile {profile_display_name(profile)} already exists: {path}"
        ) from exc
    except OSError as exc:
        raise ConfigError(f"failed to create profile file: {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(serialized)
    except OSError as exc:
        # A partial file would block a later save of the same credentials.
        path.unlink(missing_ok=True)
        raise ConfigError(f"failed to write profile file: {path}: {exc}") from exc

    _chmod_owner_only(path)
    return path
