"""CLI command for Google Drive authorization: postwatch auth."""

from __future__ import annotations

from pathlib import Path

import click

from postwatch.core.config import load_config, resolve_home
from postwatch.core.errors import CredentialsError


@click.command("auth")
@click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override POSTWATCH_HOME path.",
)
@click.option(
    "--client-secret",
    type=click.Path(path_type=Path),
    default=None,
    help="OAuth client file (default: drive.client_secret, or <home>/credentials.json).",
)
@click.option("--no-browser", is_flag=True, help="Print the consent URL instead of opening it.")
def auth_cmd(home: Path | None, client_secret: Path | None, no_browser: bool) -> None:
    """Authorize read access to Google Drive and store the token."""
    from postwatch.providers.drive.gdrive import authorize

    home_path = home or resolve_home()
    drive_cfg = load_config(home_path / "config.yaml").get("drive", {})

    secret = client_secret or drive_cfg.get("client_secret")
    secret_path = Path(secret).expanduser() if secret else home_path / "credentials.json"
    if not secret_path.exists():
        raise click.ClickException(f"Client secret file not found: {secret_path}")

    click.echo("Complete the consent flow in your browser...")
    try:
        location = authorize(
            secret_path,
            credential=drive_cfg.get("credential", "keyring"),
            open_browser=not no_browser,
        )
    except CredentialsError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Google Drive token saved to {location}")
