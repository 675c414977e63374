"""Command line interface for deltaticks."""

from deltaticks.cli.main import app, create_app

__all__ = ["app", "create_app"]
