"""Options for ``falproxy serve``.

Every option defaults to ``None`` so an unset flag keeps the value coming
from the environment or the config file. Values given on the command line
are checked by the same settings models that validate the config file.
"""

from collections.abc import Callable
from typing import Any

import typer
from pydantic import BaseModel
from pydantic import ValidationError as SettingsValidationError

from falproxy.config.core import LoggingSettings, ServerSettings


SERVER_PANEL = "Server Settings"
LOGGING_PANEL = "Logging"


def field_help(model: type[BaseModel], name: str) -> str:
    """Help text taken from a settings field, with its built-in default."""
    field = model.model_fields[name]
    return f"{field.description} (default: {field.default})"


def settings_field_callback(
    model: type[BaseModel], name: str
) -> Callable[[typer.Context, typer.CallbackParam, Any], Any]:
    """Build a typer callback that validates and normalizes through ``model``."""

    def callback(ctx: typer.Context, param: typer.CallbackParam, value: Any) -> Any:
        if value is None:
            return None
        try:
            validated = model.model_validate({name: value})
        except SettingsValidationError as e:
            raise typer.BadParameter(e.errors()[0]["msg"]) from e
        return getattr(validated, name)

    return callback


def port_option() -> Any:
    return typer.Option(
        None,
        "--port",
        "-p",
        help=field_help(ServerSettings, "port"),
        callback=settings_field_callback(ServerSettings, "port"),
        rich_help_panel=SERVER_PANEL,
    )


def host_option() -> Any:
    return typer.Option(
        None,
        "--host",
        help=field_help(ServerSettings, "host"),
        rich_help_panel=SERVER_PANEL,
    )


def reload_option() -> Any:
    return typer.Option(
        None,
        "--reload/--no-reload",
        help=field_help(ServerSettings, "reload"),
        rich_help_panel=SERVER_PANEL,
    )


def log_level_option() -> Any:
    return typer.Option(
        None,
        "--log-level",
        help=field_help(LoggingSettings, "level"),
        callback=settings_field_callback(LoggingSettings, "level"),
        rich_help_panel=LOGGING_PANEL,
    )


def log_format_option() -> Any:
    return typer.Option(
        None,
        "--log-format",
        help="Log output format: auto, rich, json or plain (default: auto)",
        callback=settings_field_callback(LoggingSettings, "format"),
        rich_help_panel=LOGGING_PANEL,
    )
