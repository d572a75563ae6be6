"""CLI entry point for postwatch."""

import click

from postwatch import __version__
from postwatch.cli.auth_cmd import auth_cmd
from postwatch.cli.control_cmd import health_cmd, stop_cmd
from postwatch.cli.serve_cmd import catalog_cmd, serve_cmd


@click.group()
@click.version_option(version=__version__, prog_name="postwatch")
def cli() -> None:
    """postwatch — republish Google Drive posts when they change."""


cli.add_command(auth_cmd)
cli.add_command(serve_cmd)
cli.add_command(catalog_cmd)
cli.add_command(stop_cmd)
cli.add_command(health_cmd)


if __name__ == "__main__":
    cli()
