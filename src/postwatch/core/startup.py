"""Startup — build the catalog, subscribe each post and fill the registry."""

from __future__ import annotations

import logging

from postwatch.core.catalog import build_catalog
from postwatch.core.errors import DriveError
from postwatch.core.models import Resource
from postwatch.core.registry import DuplicateChannelError, Registry
from postwatch.core.subscriber import ChannelSubscriber
from postwatch.pipeline.base import Refresher
from postwatch.providers.drive.base import RemoteStore

log = logging.getLogger(__name__)


def build_registry(
    store: RemoteStore,
    subscriber: ChannelSubscriber,
    root_name: str,
    max_authors: int = 0,
    refresher: Refresher | None = None,
) -> Registry:
    """Walk the store and return a registry with one channel per post.

    Posts whose subscription fails are left out. When ``refresher`` is
    given, each newly subscribed post is refreshed once.

    Raises:
        CatalogError: Root folder missing.
    """
    log.debug("Getting list of files to subscribe to")
    entries = build_catalog(store, root_name, max_authors=max_authors)

    registry = Registry()
    for entry in entries:
        if registry.is_watched(entry.file_id):
            log.warning("File %s already watched, skipping %s/%s",
                        entry.file_id, entry.author, entry.date)
            continue

        channel = subscriber.subscribe(entry, taken=registry.channel_ids())
        if channel is None:
            continue

        resource = Resource.from_entry(entry, channel)
        try:
            registry.add(resource)
        except DuplicateChannelError as e:
            log.error("Not registering %s: %s", resource.key, e)
            try:
                store.stop_channel(channel)
            except DriveError as stop_err:
                log.error("Error stopping rejected channel %s: %s", channel.id, stop_err)
            continue

        if refresher is not None:
            _initial_refresh(refresher, resource)

    log.info("Watching %d of %d posts", len(registry), len(entries))
    return registry


def _initial_refresh(refresher: Refresher, resource: Resource) -> None:
    with resource.lock:
        try:
            result = refresher.refresh(resource)
        except Exception:
            log.error("Failed to download %s after subscribing", resource.key, exc_info=True)
            return
    if not result.success:
        log.error("Failed to download %s after subscribing (step %r): %s",
                  resource.key, result.step, result.detail)
