"""Command line entry points for JournalMate utilities."""

from typer import Typer

from .notifications import notifications_app


cli = Typer(help="JournalMate command line tools")
cli.add_typer(notifications_app, name="notifications")
