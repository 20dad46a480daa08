"""Refactor Assistant CLI.

Usage:
    refactor-assistant serve            Start the HTTP/SSE server
    refactor-assistant config show      Show the resolved configuration
    refactor-assistant config validate  Validate a config file
    refactor-assistant version          Show the installed version
"""

import logging
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from refactor_assistant.config import AssistantConfig, load_config

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="refactor-assistant",
    help="Conversational refactoring assessments against a remote job API",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to refactor-assistant.yaml config file"
    ),
):
    """Refactor Assistant CLI."""
    global _config_path
    _config_path = config


def _load_or_exit() -> AssistantConfig:
    try:
        return load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


def _mask(value: str | None) -> str:
    if not value:
        return "-"
    return "***" + value[-4:] if len(value) > 8 else "***"


@app.command()
def version():
    """Show the installed Refactor Assistant version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("refactor-assistant")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]Refactor Assistant[/bold] v{v}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the HTTP/SSE server with uvicorn."""
    import uvicorn

    from refactor_assistant.api.main import create_app

    cfg = _load_or_exit()
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    _log.info("Starting server on %s:%d", bind_host, bind_port)
    uvicorn.run(
        create_app(cfg),
        host=bind_host,
        port=bind_port,
        log_level=cfg.server.log_level,
    )


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    cfg = _load_or_exit()

    table = Table(title="Refactor Assistant Configuration")
    table.add_column("Section", style="bold")
    table.add_column("Key")
    table.add_column("Value")

    table.add_row("remote", "base_url", cfg.remote.base_url)
    table.add_row("remote", "timeout_seconds", str(cfg.remote.timeout_seconds))
    table.add_row("remote", "identity_token", _mask(cfg.remote.identity_token))
    table.add_row("polling", "interval_seconds", str(cfg.polling.interval_seconds))
    table.add_row(
        "polling", "max_consecutive_errors", str(cfg.polling.max_consecutive_errors)
    )
    table.add_row("workspace", "root", cfg.workspace.root or "-")
    table.add_row(
        "workspace", "max_file_size_bytes", str(cfg.workspace.max_file_size_bytes)
    )
    table.add_row(
        "workspace", "exclude_patterns", f"{len(cfg.workspace.exclude_patterns)} patterns"
    )
    table.add_row("artifacts", "directory", cfg.artifacts.directory or "(in memory)")
    table.add_row("server", "host", cfg.server.host)
    table.add_row("server", "port", str(cfg.server.port))
    table.add_row("server", "log_level", cfg.server.log_level)
    table.add_row("server", "api_key", _mask(cfg.server.api_key))

    console.print(table)


@config_app.command("validate")
def config_validate():
    """Validate a config file without starting the server."""
    cfg = _load_or_exit()
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Remote: {cfg.remote.base_url}")
    console.print(
        f"  Polling: every {cfg.polling.interval_seconds}s, "
        f"give up after {cfg.polling.max_consecutive_errors} errors"
    )


if __name__ == "__main__":
    app()
