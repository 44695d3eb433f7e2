"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for authflow:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.authflow/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_providers_dir`.
* **Base config** -- a single :class:`~authflow.models.BaseConfig` JSON file
  with the settings shared by every flow.
* **Providers** -- one JSON file per provider, each deserialised into a
  :class:`~authflow.models.FlowConfig`. Managed via :func:`load_provider`,
  :func:`save_provider`, :func:`delete_provider`.
* **Precedence resolution** -- :func:`resolve_config` layers CLI flags and
  environment variables over the stored base config.

All file writes go through :func:`atomic_write` (temp file, fsync, rename).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from authflow.exceptions import ConfigError
from authflow.models import BaseConfig, FlowConfig

_APP_NAME = "authflow"
_CONFIG_FILENAME = "config.json"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/authflow/`` (default ``~/.config/authflow/``).
    On macOS/Windows: ``~/.authflow/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (pending flow state, tokens), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/authflow/`` (default ``~/.local/share/authflow/``).
    On macOS/Windows: ``~/.authflow/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_providers_dir() -> Path:
    """Return the providers directory (``<config_dir>/providers/``), creating it if necessary."""
    path = get_config_dir() / "providers"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created next to *path* so ``os.replace`` is an
    atomic rename on POSIX. When *mode* is given the permissions are set
    before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _read_json(path: Path, what: str) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {what} at {path}: expected a JSON object")
    return data


# --- Base config ---


def _base_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_base_config() -> BaseConfig:
    """Load the shared configuration from the config directory.

    Returns:
        The stored :class:`~authflow.models.BaseConfig`, or the defaults
        when no file exists.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = _base_config_path()
    if not path.is_file():
        return BaseConfig()
    data = _read_json(path, "config")
    try:
        return BaseConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_base_config(config: BaseConfig) -> None:
    """Persist the shared configuration atomically."""
    data = config.model_dump(mode="json")
    atomic_write(_base_config_path(), json.dumps(data, indent=2) + "\n")


# --- Providers ---


def _provider_path(name: str) -> Path:
    return get_providers_dir() / f"{name}.json"


def list_providers() -> list[str]:
    """Return all configured provider names, sorted alphabetically."""
    return sorted(p.stem for p in get_providers_dir().glob("*.json") if p.is_file())


def provider_exists(name: str) -> bool:
    return _provider_path(name).is_file()


def load_provider(name: str) -> FlowConfig:
    """Load and validate a provider definition.

    The ``name`` stored in the file is ignored in favour of the file name,
    since the name is the storage key of the provider's pending flows.

    Raises:
        ConfigError: If the provider does not exist, contains invalid JSON,
            or fails validation.
    """
    path = _provider_path(name)
    if not path.is_file():
        raise ConfigError(f"Provider '{name}' not found at {path}")
    data = _read_json(path, f"provider '{name}'")
    data["name"] = name
    try:
        return FlowConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid provider '{name}' at {path}: {exc}") from exc


def save_provider(config: FlowConfig) -> Path:
    """Persist a provider definition atomically and return its path.

    Generated ``state`` / ``nonce`` factories are stored as ``true`` and
    load back as random values.
    """
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    path = _provider_path(config.name)
    atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


def delete_provider(name: str) -> None:
    """Delete a provider definition.

    Raises:
        ConfigError: If the provider does not exist.
    """
    path = _provider_path(name)
    if not path.is_file():
        raise ConfigError(f"Provider '{name}' not found at {path}")
    path.unlink()


# --- Precedence resolution ---


def _env_bool(var: str) -> Optional[bool]:
    raw = os.environ.get(var)
    if raw is None:
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError(f"Environment variable {var} must be a boolean, got '{raw}'")


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_platform: Optional[str] = None,
) -> BaseConfig:
    """Resolve the effective :class:`~authflow.models.BaseConfig`.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_platform``)
        2. Environment variables (``AUTHFLOW_BASE_URL``,
           ``AUTHFLOW_PLATFORM``, ``AUTHFLOW_WITH_CREDENTIALS``)
        3. The stored config file
        4. Defaults
    """
    config = load_base_config()
    updates: dict[str, object] = {}

    env_base_url = os.environ.get("AUTHFLOW_BASE_URL")
    if env_base_url:
        updates["base_url"] = env_base_url
    env_platform = os.environ.get("AUTHFLOW_PLATFORM")
    if env_platform:
        updates["platform"] = env_platform
    env_credentials = _env_bool("AUTHFLOW_WITH_CREDENTIALS")
    if env_credentials is not None:
        updates["with_credentials"] = env_credentials

    if cli_base_url is not None:
        updates["base_url"] = cli_base_url
    if cli_platform is not None:
        updates["platform"] = cli_platform

    if not updates:
        return config
    return config.model_copy(update=updates)
