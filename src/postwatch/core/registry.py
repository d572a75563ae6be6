"""Resource registry — channel id -> Resource map shared by request handlers."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from postwatch.core.models import Resource

log = logging.getLogger(__name__)


class DuplicateChannelError(ValueError):
    """Channel id or watched file already present in the registry."""


class Registry:
    """Thread-safe mapping from channel id to the Resource it watches.

    Structural changes (``add``, ``drain``) and lookups serialize on one
    registry lock held only for the dict operation itself. Per-resource
    state is guarded by each Resource's own lock, never by this one.
    """

    def __init__(self) -> None:
        self._resources: dict[str, Resource] = {}
        self._file_ids: set[str] = set()
        self._lock = threading.RLock()

    def add(self, resource: Resource) -> None:
        """Register ``resource`` under its channel id.

        Raises:
            DuplicateChannelError: The channel id is taken or the file is
                already watched by another channel.
        """
        channel_id = resource.channel.id
        with self._lock:
            if channel_id in self._resources:
                raise DuplicateChannelError(f"Channel id already registered: {channel_id}")
            if resource.file_id in self._file_ids:
                raise DuplicateChannelError(f"File already watched: {resource.file_id}")
            self._resources[channel_id] = resource
            self._file_ids.add(resource.file_id)

    def get(self, channel_id: str) -> Resource | None:
        with self._lock:
            return self._resources.get(channel_id)

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._resources

    def __len__(self) -> int:
        with self._lock:
            return len(self._resources)

    def channel_ids(self) -> set[str]:
        with self._lock:
            return set(self._resources)

    def is_watched(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._file_ids

    def snapshot(self) -> list[Resource]:
        """Return the current resources without removing them."""
        with self._lock:
            return list(self._resources.values())

    def drain(self) -> list[Resource]:
        """Remove and return every resource."""
        with self._lock:
            resources = list(self._resources.values())
            self._resources.clear()
            self._file_ids.clear()
        log.info("Registry drained (%d resources)", len(resources))
        return resources

    def health(self, now: datetime | None = None) -> dict:
        """Channel expiration summary; channels are never renewed."""
        resources = sorted(self.snapshot(), key=lambda r: r.key)
        channels = [r.channel for r in resources]
        expired = [c for c in channels if c.is_expired(now)]
        return {
            "status": "degraded" if expired else "ok",
            "channels": len(channels),
            "expired": len(expired),
            "next_expiration": (
                min(c.expiration for c in channels).isoformat() if channels else None
            ),
            "resources": [
                {
                    "key": r.key,
                    "filename": r.filename,
                    "channel": r.channel.to_dict(),
                    "expired": r.channel.is_expired(now),
                }
                for r in resources
            ],
        }
