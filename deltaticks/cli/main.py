"""Main entry point for the deltaticks command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from deltaticks.core.logging import configure_logging

from .candles import register as register_candle_commands
from .formatters import create_formatter
from .ingest import register as register_import_commands


def create_app() -> typer.Typer:
    """Create a Typer application instance for deltaticks."""

    app = typer.Typer(add_completion=False, help="Delta Exchange tick import and candle builder")

    @app.callback()
    def main(
        ctx: typer.Context,
        config: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="Configuration file (defaults to ~/.deltaticks/config.toml).",
        ),
        database: str | None = typer.Option(
            None,
            "--database",
            "-d",
            help="DuckDB database path (':memory:' allowed).",
        ),
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Log level (overrides config and DELTATICKS_LOG_LEVEL).",
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            # Validate formatter eagerly for immediate feedback on invalid options
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        if log_level is not None:
            try:
                configure_logging(log_level)
            except ValueError as exc:
                raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "config_path": config,
                "database": database,
                "log_level": log_level.upper() if log_level else None,
                "no_color": no_color,
            }
        )

    register_import_commands(app)
    register_candle_commands(app)
    return app


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    app()
