"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from predictlink.config import get_settings
from predictlink.config.settings import configure_logging

app = typer.Typer(
    name="predictlink",
    help="PredictLink - hybrid oracle: AI evidence aggregation with optimistic propose/dispute/resolve.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from predictlink.cli import events, evidence, monitor, proposals  # noqa: E402

app.add_typer(events.app, name="events")
app.add_typer(proposals.app, name="proposals")
app.add_typer(evidence.app, name="evidence")
app.add_typer(monitor.app, name="monitor")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
