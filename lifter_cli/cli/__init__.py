"""Command-line interface: the Typer app, Rich formatters and the live progress display."""
