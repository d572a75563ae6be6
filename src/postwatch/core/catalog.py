"""Catalog builder — walk root/author/date folders and collect posts to watch."""

from __future__ import annotations

import logging

from postwatch.core.errors import CatalogError, DriveError
from postwatch.core.models import ASSET_MIMES, FOLDER_MIME, POST_MIMES, CatalogEntry
from postwatch.providers.drive.base import RemoteStore

log = logging.getLogger(__name__)


def build_catalog(
    store: RemoteStore,
    root_name: str,
    max_authors: int = 0,
) -> list[CatalogEntry]:
    """Enumerate every post under ``root_name``.

    Each date folder must hold exactly one post document and at most one
    cover image. Date folders that break this rule are logged and skipped;
    so is any author or date folder whose listing fails. Only a missing or
    unlistable root folder raises.

    Args:
        store: Remote store to walk.
        root_name: Name of the top-level folder.
        max_authors: Stop after this many author folders (0 = all).

    Raises:
        CatalogError: Root folder not found or not listable.
    """
    try:
        root = store.find_folder(root_name)
    except DriveError as e:
        raise CatalogError(f"Error querying for {root_name!r} folder: {e}") from e
    if root is None:
        raise CatalogError(f"{root_name!r} folder not found")

    log.debug("Found root folder %s (%s)", root.name, root.id)

    try:
        authors = store.list_children(root.id, (FOLDER_MIME,))
    except DriveError as e:
        raise CatalogError(f"Error listing author folders: {e}") from e

    entries: list[CatalogEntry] = []
    for i, author in enumerate(authors):
        if max_authors and i >= max_authors:
            log.debug("Author limit %d reached, skipping the rest", max_authors)
            break

        log.debug("Retrieving posts for author %s", author.name)
        try:
            dates = store.list_children(author.id, (FOLDER_MIME,))
        except DriveError as e:
            log.error("Error listing post folders for author %r: %s", author.name, e)
            continue

        for date in dates:
            entry = _entry_for_date(store, author.name, date.name, date.id)
            if entry is not None:
                entries.append(entry)

    log.info("Catalog built: %d posts from %d authors", len(entries), len(authors))
    return entries


def _entry_for_date(
    store: RemoteStore,
    author: str,
    date: str,
    folder_id: str,
) -> CatalogEntry | None:
    """Build the entry for one date folder, or None if it must be skipped."""
    try:
        posts = store.list_children(folder_id, POST_MIMES)
        assets = store.list_children(folder_id, ASSET_MIMES)
    except DriveError as e:
        log.error("Error listing post folder %s/%s: %s", author, date, e)
        return None

    if len(posts) != 1:
        log.error(
            "Unexpected number of post files in %s/%s (actual=%d, expected=1)",
            author, date, len(posts),
        )
        return None

    if len(assets) > 1:
        log.error(
            "Unexpected number of image files in %s/%s (actual=%d, expected<=1)",
            author, date, len(assets),
        )
        return None

    post = posts[0]
    return CatalogEntry(
        author=author,
        date=date,
        file_id=post.id,
        filename=post.name,
        mime_type=post.mime_type,
        asset=assets[0] if assets else None,
    )
