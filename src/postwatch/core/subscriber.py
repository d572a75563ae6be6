"""Channel subscriber — open one Drive push-notification channel per post."""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable, Container
from datetime import datetime, timedelta, timezone

from postwatch.core.errors import DriveError
from postwatch.core.models import CatalogEntry, Channel
from postwatch.providers.drive.base import RemoteStore

log = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_letters + string.digits
MIN_ID_LENGTH = 10


def generate_channel_id(length: int = 16) -> str:
    """Random alphanumeric channel id."""
    if length < MIN_ID_LENGTH:
        raise ValueError(f"channel id length must be >= {MIN_ID_LENGTH}, got {length}")
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelSubscriber:
    """Request channels from the remote store for catalog entries."""

    def __init__(
        self,
        store: RemoteStore,
        address: str,
        ttl_seconds: float = 3600,
        id_length: int = 16,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if id_length < MIN_ID_LENGTH:
            raise ValueError(f"channel id length must be >= {MIN_ID_LENGTH}, got {id_length}")
        self.store = store
        self.address = address
        self.ttl = timedelta(seconds=ttl_seconds)
        self.id_length = id_length
        self._now = now

    def _new_id(self, taken: Container[str]) -> str:
        while True:
            channel_id = generate_channel_id(self.id_length)
            if channel_id not in taken:
                return channel_id

    def subscribe(self, entry: CatalogEntry, taken: Container[str] = ()) -> Channel | None:
        """Open a channel for ``entry``. Returns None if Drive refused it.

        ``taken`` holds channel ids already in use; the new id avoids them.
        """
        channel_id = self._new_id(taken)
        expiration = self._now() + self.ttl
        body = {
            "kind": "api#channel",
            "id": channel_id,
            "resourceId": entry.file_id,
            "type": "web_hook",
            "address": self.address,
            "expiration": int(expiration.timestamp() * 1000),
            "payload": True,
        }

        try:
            echoed = self.store.watch(entry.file_id, body) or {}
        except DriveError as e:
            log.error("Failed to subscribe to %s/%s (%s): %s",
                      entry.author, entry.date, entry.file_id, e)
            return None

        # Drive may shorten the requested expiration; trust what it echoes.
        if echoed.get("expiration"):
            expiration = datetime.fromtimestamp(
                int(echoed["expiration"]) / 1000, tz=timezone.utc,
            )

        channel = Channel(
            id=echoed.get("id", channel_id),
            resource_id=entry.file_id,
            address=self.address,
            expiration=expiration,
            remote_resource_id=echoed.get("resourceId", ""),
        )
        log.info("Subscribed to %s/%s on channel %s (expires %s)",
                 entry.author, entry.date, channel.id, expiration.isoformat())
        return channel
