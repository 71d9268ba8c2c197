"""Main entry point for the fal proxy API server."""

import os
from pathlib import Path

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from falproxy._version import __version__
from falproxy.api.app import create_app
from falproxy.config.settings import ConfigurationError, Settings, get_settings
from falproxy.core.logging import get_logger, setup_logging

from .options.server_options import (
    host_option,
    log_format_option,
    log_level_option,
    port_option,
    reload_option,
)


console = Console()
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"falproxy {__version__}")
        raise typer.Exit()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=True,
    no_args_is_help=False,
    pretty_exceptions_enable=False,
)


@app.callback()
def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to TOML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """fal proxy - Anthropic Messages API compatible proxy for fal.ai models."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


def _load_settings(ctx: typer.Context, **overrides: dict[str, object]) -> Settings:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return Settings.from_config(config_path=config_path, **overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


def _export_for_reload(settings: Settings, config_path: Path | None) -> None:
    """Expose CLI overrides to the reloader's worker process via environment."""
    if config_path is not None:
        os.environ["CONFIG_FILE"] = str(config_path)
    os.environ["SERVER__HOST"] = settings.server.host
    os.environ["SERVER__PORT"] = str(settings.server.port)
    os.environ["LOGGING__LEVEL"] = settings.logging.level
    os.environ["LOGGING__FORMAT"] = settings.logging.format
    get_settings.cache_clear()


@app.command()
def serve(
    ctx: typer.Context,
    port: int | None = port_option(),
    host: str | None = host_option(),
    reload: bool | None = reload_option(),
    log_level: str | None = log_level_option(),
    log_format: str | None = log_format_option(),
) -> None:
    """Run the API server."""
    settings = _load_settings(
        ctx,
        server={"port": port, "host": host, "reload": reload},
        logging={"level": log_level, "format": log_format},
    )

    setup_logging(
        json_logs=settings.logging.format == "json",
        log_level_name=settings.logging.level,
        log_format=settings.logging.format,
    )
    logger.info(
        "cli_serve_starting",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
    )

    if settings.server.reload:
        _export_for_reload(settings, (ctx.obj or {}).get("config_path"))
        uvicorn.run(
            app="falproxy.api.app:create_app",
            factory=True,
            host=settings.server.host,
            port=settings.server.port,
            reload=True,
            log_config=None,
        )
    else:
        uvicorn.run(
            create_app(settings),
            host=settings.server.host,
            port=settings.server.port,
            log_config=None,
        )


def _settings_table(title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", width=22)
    table.add_column("Value", style="green")
    return table


@app.command(name="config")
def show_config(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    settings = _load_settings(ctx)

    server_table = _settings_table("Server Configuration")
    server_table.add_row("host", settings.server.host)
    server_table.add_row("port", str(settings.server.port))
    server_table.add_row("reload", str(settings.server.reload))
    server_table.add_row("server_url", settings.server_url)
    server_table.add_row("cors_origins", ", ".join(settings.cors_origins))

    logging_table = _settings_table("Logging Configuration")
    logging_table.add_row("level", settings.logging.level)
    logging_table.add_row("format", settings.logging.format)
    logging_table.add_row("verbose_api", str(settings.logging.verbose_api))

    backend = settings.backend
    backend_table = _settings_table("Backend Configuration")
    backend_table.add_row("base_url", backend.base_url)
    backend_table.add_row("standard_endpoint", backend.standard_endpoint)
    backend_table.add_row("enterprise_endpoint", backend.enterprise_endpoint)
    backend_table.add_row("enterprise_threshold", str(backend.enterprise_threshold))
    backend_table.add_row("default_model", backend.default_model)
    backend_table.add_row("default_max_tokens", str(backend.default_max_tokens))
    backend_table.add_row("timeout", f"{backend.timeout}s")
    backend_table.add_row("advertised_models", str(len(settings.catalog.models)))

    streaming = settings.streaming
    streaming_table = _settings_table("Streaming Configuration")
    streaming_table.add_row("text_chunk_size", str(streaming.text_chunk_size))
    streaming_table.add_row("tool_chunk_size", str(streaming.tool_chunk_size))
    streaming_table.add_row("text_delay", f"{streaming.text_delay}s")
    streaming_table.add_row("tool_delay", f"{streaming.tool_delay}s")

    for table in (server_table, logging_table, backend_table, streaming_table):
        console.print(table)
        console.print()

    if backend.model_mapping:
        mapping_table = Table(
            title="Model Mapping", show_header=True, header_style="bold magenta"
        )
        mapping_table.add_column("Requested", style="cyan")
        mapping_table.add_column("Sent upstream", style="green")
        for requested, mapped in backend.model_mapping.items():
            mapping_table.add_row(requested, mapped)
        console.print(mapping_table)


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
