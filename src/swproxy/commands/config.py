"""Config commands -- view and modify the worker configuration.

Provides the ``swproxy config`` sub-command group for reading, updating and
resetting the user config file (:class:`~swproxy.models.WorkerConfig`).
``show`` prints the *effective* config, after project-local overrides,
environment variables and global flags have been applied.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from swproxy.exceptions import ConfigError
from swproxy.output import emit, error, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Example::

        swproxy config show
        swproxy --json config show
    """
    from swproxy.commands.worker import resolve_from_context
    from swproxy.config import get_config_dir

    try:
        config = resolve_from_context(ctx)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    emit(config.model_dump(mode="json"))


def _coerce(current: Any, value: str, key: str) -> Any:
    """Convert *value* to the type of the field it replaces."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, list):
        items = [item.strip() for item in value.split(",") if item.strip()]
        if current and all(isinstance(item, int) for item in current):
            try:
                return [int(item) for item in items]
            except ValueError:
                error(f"Expected comma-separated integers for {key}, got: {value}")
                raise typer.Exit(code=2) from None
        return items
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g., 'caches.static')."),
    value: str = typer.Argument(help="Value to set; lists are comma-separated."),
) -> None:
    """Set a value in the user config file.

    The value is coerced to the existing field's type (bool, int, list or
    str) and the result is validated before it is saved.

    Example::

        swproxy config set origin https://app.example.com
        swproxy config set caches.static dsog-delivery-v2.2.0
        swproxy config set api_cache.max_age_seconds 1800
        swproxy config set precache_urls /delivery/,/delivery/offline.html
    """
    from swproxy.config import load_config, save_config
    from swproxy.models import WorkerConfig

    try:
        data = load_config().model_dump(mode="json")
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]

    final_key = parts[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(target[final_key], value, key)
    target[final_key] = coerced

    try:
        new_config = WorkerConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset the user config file to defaults.

    Asks for confirmation unless ``--force`` is given.

    Example::

        swproxy config reset
        swproxy --force config reset
    """
    from swproxy.config import save_config
    from swproxy.models import WorkerConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_config(WorkerConfig())
    success("Configuration reset to defaults.")
