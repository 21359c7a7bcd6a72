"""Catalog Agent CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

from catalog_agent.cli.fetch import fetch_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="catalog-agent",
    help="Catalog Agent - Fetch and reconcile metadata for a personal media catalog",
    add_completion=False,
)
app.add_typer(fetch_app, name="fetch")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    level = logging.DEBUG if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version() -> None:
    """Show the Catalog Agent version."""
    typer.echo("Catalog Agent v0.1.0")


if __name__ == "__main__":
    app()
