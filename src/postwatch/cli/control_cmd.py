"""CLI commands for a running server: postwatch stop, postwatch health."""

from __future__ import annotations

import json
from pathlib import Path

import click
import httpx

from postwatch.core.config import load_config, resolve_home


def _base_url(home: Path | None, url: str | None) -> str:
    if url:
        return url.rstrip("/")
    config = load_config((home or resolve_home()) / "config.yaml")
    server = config.get("server", {})
    return f"http://{server.get('host', '127.0.0.1')}:{server.get('port', 9000)}"


_home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override POSTWATCH_HOME path.",
)
_url_option = click.option(
    "--url", default=None, help="Server base URL (default: from config).",
)


@click.command("stop")
@_home_option
@_url_option
def stop_cmd(home: Path | None, url: str | None) -> None:
    """Stop every notification channel and shut the server down."""
    base = _base_url(home, url)
    try:
        resp = httpx.post(f"{base}/api/stop", timeout=120.0)
    except httpx.HTTPError as e:
        raise click.ClickException(f"Cannot reach server at {base}: {e}") from e

    try:
        data = resp.json()
    except ValueError:
        data = {}
    attempted = data.get("attempted", "?")
    failed = data.get("failed", "?")

    if resp.status_code == 200:
        click.echo(f"Stopped {attempted} channels. Server is shutting down.")
    else:
        click.echo(f"Some channels failed to stop ({failed} of {attempted}). Server is shutting down.")
        raise SystemExit(1)


@click.command("health")
@_home_option
@_url_option
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON.")
def health_cmd(home: Path | None, url: str | None, as_json: bool) -> None:
    """Show channel expiration status of a running server."""
    base = _base_url(home, url)
    try:
        resp = httpx.get(f"{base}/api/health", timeout=10.0)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise click.ClickException(f"Cannot reach server at {base}: {e}") from e

    data = resp.json()
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Status: {data.get('status')}  (version {data.get('version')})")
    click.echo(f"Channels: {data.get('channels')}  expired: {data.get('expired')}")
    if data.get("next_expiration"):
        click.echo(f"Next expiration: {data['next_expiration']}")
    for item in data.get("resources", []):
        mark = "EXPIRED" if item.get("expired") else "ok"
        click.echo(f"  [{mark}] {item['key']}  {item['filename']}  "
                   f"until {item['channel']['expiration']}")
