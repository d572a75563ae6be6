"""CLI commands that talk to Drive directly: postwatch serve, postwatch catalog."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from postwatch.core.config import load_config, resolve_home
from postwatch.core.errors import CatalogError, CredentialsError
from postwatch.core.logging_setup import setup_logging

_home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override POSTWATCH_HOME path.",
)


def _load(home: Path | None) -> dict:
    home_path = home or resolve_home()
    config = load_config(home_path / "config.yaml")
    setup_logging(config.get("log_level", "info"), config.get("log_file"))
    return config


def _create_store(config: dict):
    from postwatch.providers.drive.gdrive import GDriveStore

    return GDriveStore(config.get("drive", {}))


@click.command("serve")
@_home_option
@click.option("--port", "-p", default=None, type=int, help="Port (default: 9000).")
@click.option("--host", default=None, help="Host (default: 127.0.0.1).")
def serve_cmd(home: Path | None, port: int | None, host: str | None) -> None:
    """Subscribe to every post and serve Drive webhooks."""
    import uvicorn

    from postwatch.api.server import create_app
    from postwatch.core.dispatcher import NotificationDispatcher
    from postwatch.core.lifecycle import LifecycleController
    from postwatch.core.startup import build_registry
    from postwatch.core.subscriber import ChannelSubscriber
    from postwatch.pipeline.publish import PublishPipeline

    config = _load(home)
    log = logging.getLogger("postwatch")
    log.info("Starting up postwatch")

    drive_cfg = config.get("drive", {})
    channels_cfg = config.get("channels", {})
    pipeline_cfg = config.get("pipeline", {})
    server_cfg = config.get("server", {})

    store = _create_store(config)
    pipeline = PublishPipeline(store, pipeline_cfg)
    subscriber = ChannelSubscriber(
        store,
        address=channels_cfg.get("address", ""),
        ttl_seconds=channels_cfg.get("ttl_seconds", 3600),
        id_length=channels_cfg.get("id_length", 16),
    )

    try:
        registry = build_registry(
            store,
            subscriber,
            drive_cfg.get("root_folder", "attic-posts"),
            max_authors=config.get("catalog", {}).get("max_authors", 0),
            refresher=pipeline if pipeline_cfg.get("refresh_on_subscribe", True) else None,
        )
    except (CatalogError, CredentialsError) as e:
        raise click.ClickException(f"Failed to subscribe to posts: {e}") from e

    dispatcher = NotificationDispatcher(
        registry,
        pipeline,
        cooldown_seconds=config.get("dispatch", {}).get("cooldown_seconds", 60),
    )
    controller = LifecycleController(registry, store)
    app = create_app(registry, dispatcher, controller)

    final_host = host or server_cfg.get("host", "127.0.0.1")
    final_port = port or server_cfg.get("port", 9000)
    click.echo(f"Watching {len(registry)} posts, listening on http://{final_host}:{final_port}")

    uvicorn.run(
        app,
        host=final_host,
        port=final_port,
        log_level="info",
        timeout_graceful_shutdown=server_cfg.get("graceful_shutdown_seconds", 30),
    )


@click.command("catalog")
@_home_option
def catalog_cmd(home: Path | None) -> None:
    """List the posts that would be watched, without subscribing."""
    from postwatch.core.catalog import build_catalog

    config = _load(home)
    store = _create_store(config)
    try:
        entries = build_catalog(
            store,
            config.get("drive", {}).get("root_folder", "attic-posts"),
            max_authors=config.get("catalog", {}).get("max_authors", 0),
        )
    except (CatalogError, CredentialsError) as e:
        raise click.ClickException(str(e)) from e

    if not entries:
        click.echo("No posts found.")
        return

    for entry in entries:
        asset = entry.asset.name if entry.asset else "-"
        click.echo(f"{entry.author}/{entry.date}  {entry.filename}  (cover: {asset})")
    click.echo(f"{len(entries)} posts")
