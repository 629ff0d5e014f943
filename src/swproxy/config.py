"""Configuration: XDG directories, atomic writes and precedence resolution.

* **Directories** -- XDG Base Directory layout on Linux/BSD, ``~/.swproxy/``
  elsewhere. :func:`get_storage_dir` and :func:`get_queue_dir` derive where
  cache namespaces and the retry queue live.
* **Worker config** -- one :class:`~swproxy.models.WorkerConfig` JSON file
  holding the origin, namespace generations, route rules and notification
  defaults.
* **Precedence** -- :func:`resolve_config` layers CLI flags, environment
  variables, ``./swproxy.json`` and the user file over the defaults.

Writes go through :func:`_atomic_write`, so a crash never leaves a
half-written config behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from swproxy.exceptions import ConfigError
from swproxy.models import WorkerConfig

_APP_NAME = "swproxy"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "swproxy.json"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.swproxy)
_DIRS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "cache": ("XDG_CACHE_HOME", (".cache",), "cache"),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}

# environment variable -> WorkerConfig field
_ENV_OVERRIDES = {
    "SWPROXY_ORIGIN": "origin",
    "SWPROXY_STORAGE_DIR": "storage_dir",
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    """Return True on Linux and the BSDs."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    variable, home_segments, fallback_sub = _DIRS[kind]
    if _is_xdg_platform():
        base = Path(os.environ.get(variable) or Path.home().joinpath(*home_segments))
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/swproxy`` or ``~/.swproxy``, created on demand."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """``$XDG_CACHE_HOME/swproxy`` or ``~/.swproxy/cache``, created on demand.

    Holds the cache namespaces and the retry queue unless
    :attr:`~swproxy.models.WorkerConfig.storage_dir` points elsewhere.
    Deleting it loses queued requests, not just cached responses.
    """
    return _app_dir("cache")


def get_data_dir() -> Path:
    """``$XDG_DATA_HOME/swproxy`` or ``~/.swproxy/logs``; crash logs go here."""
    return _app_dir("data")


def get_storage_dir(config: WorkerConfig) -> Path:
    """Return the storage root for *config*, creating it if necessary."""
    if config.storage_dir:
        path = Path(config.storage_dir).expanduser()
    else:
        path = get_cache_dir() / "storage"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_queue_dir(config: WorkerConfig, root: Optional[Path] = None) -> Path:
    """Return the retry queue directory under *root* (default: the storage root)."""
    base = root if root is not None else get_storage_dir(config)
    return base / "queue" / config.caches.queue


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* through a sibling temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


# --- Worker config ---


def _config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> WorkerConfig:
    """Load the user config file, or the defaults when there is none.

    Raises:
        ConfigError: The file is not valid JSON or fails validation.
    """
    path = _config_path()
    if not path.is_file():
        return WorkerConfig()
    data = _read_json(path, "config")
    try:
        return WorkerConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: WorkerConfig) -> None:
    _atomic_write(_config_path(), json.dumps(config.model_dump(mode="json"), indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Return the partial config in ``./swproxy.json``, or ``None`` without one.

    Raises:
        ConfigError: The file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_config(
    cli_origin: Optional[str] = None,
    cli_storage_dir: Optional[str] = None,
) -> WorkerConfig:
    """Build the effective config.

    Later layers win: defaults, user file, ``./swproxy.json`` (deep-merged),
    ``SWPROXY_ORIGIN``/``SWPROXY_STORAGE_DIR``, then the CLI flags.

    Raises:
        ConfigError: A layer is unreadable or the merged result is invalid.
    """
    data = load_config().model_dump(mode="json")

    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    for variable, field in _ENV_OVERRIDES.items():
        if os.environ.get(variable):
            data[field] = os.environ[variable]

    cli = {"origin": cli_origin, "storage_dir": cli_storage_dir}
    data.update({field: value for field, value in cli.items() if value is not None})

    try:
        return WorkerConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid effective configuration: {exc}") from exc
