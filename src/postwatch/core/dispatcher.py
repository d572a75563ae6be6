"""Notification dispatcher — turn Drive webhooks into debounced refreshes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from postwatch.core.models import DispatchOutcome, Resource
from postwatch.core.registry import Registry
from postwatch.pipeline.base import Refresher

log = logging.getLogger(__name__)

STATE_HEADER = "X-Goog-Resource-State"
CHANGED_HEADER = "X-Goog-Changed"
CHANNEL_HEADER = "X-Goog-Channel-ID"

# Changed aspects that mean the document itself changed
_RELEVANT_CHANGES = {"content", "properties"}

DEFAULT_COOLDOWN = 60.0


@dataclass
class Notification:
    """Correlation values carried by one webhook callback."""

    state: str
    channel_id: str
    changed: list[str] = field(default_factory=list)
    body: bytes = b""

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], body: bytes = b"") -> Notification:
        """Build from request headers. ``headers`` must match names case-insensitively."""
        changed_raw = headers.get(CHANGED_HEADER, "") or ""
        return cls(
            state=(headers.get(STATE_HEADER, "") or "").strip(),
            channel_id=(headers.get(CHANNEL_HEADER, "") or "").strip(),
            changed=[c.strip() for c in changed_raw.split(",") if c.strip()],
            body=body,
        )

    @property
    def relevant_changes(self) -> list[str]:
        return [c for c in self.changed if c in _RELEVANT_CHANGES]


def should_refresh(last_refreshed: float | None, now: float, cooldown: float) -> bool:
    """True when at least ``cooldown`` seconds have passed since the last refresh."""
    if last_refreshed is None:
        return True
    return now - last_refreshed >= cooldown


class NotificationDispatcher:
    """Decide, per notification, whether to run the refresher.

    Safe to call from many threads at once. Notifications for one resource
    serialize on that resource's lock; different resources never contend.
    """

    def __init__(
        self,
        registry: Registry,
        refresher: Refresher,
        cooldown_seconds: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.refresher = refresher
        self.cooldown = cooldown_seconds
        self._clock = clock

    def dispatch(self, notification: Notification) -> DispatchOutcome:
        if notification.body:
            log.debug("Notification body on channel %s: %r",
                      notification.channel_id, notification.body)

        if notification.state != "update":
            log.debug("Ignoring %r notification on channel %s",
                      notification.state, notification.channel_id)
            return DispatchOutcome.IGNORED_STATE

        changes = notification.relevant_changes
        if not changes:
            log.debug("Ignoring change %s on channel %s",
                      notification.changed, notification.channel_id)
            return DispatchOutcome.IGNORED_CHANGE

        resource = self.registry.get(notification.channel_id)
        if resource is None:
            log.error("Channel ID not found for post update: %s", notification.channel_id)
            return DispatchOutcome.UNKNOWN_CHANNEL

        with resource.lock:
            now = self._clock()
            if not should_refresh(resource.last_refreshed, now, self.cooldown):
                log.debug("Post %s refreshed %.1fs ago, skipping",
                          resource.key, now - resource.last_refreshed)
                return DispatchOutcome.DEBOUNCED

            resource.last_refreshed = now
            log.info("Received update (%s) for post %s", ",".join(changes), resource.key)
            return self._run_refresh(resource)

    def _run_refresh(self, resource: Resource) -> DispatchOutcome:
        """Call the refresher. Caller holds ``resource.lock``."""
        try:
            result = self.refresher.refresh(resource)
        except Exception:
            log.error("Refresh of %s raised", resource.key, exc_info=True)
            return DispatchOutcome.REFRESH_FAILED

        if not result.success:
            log.error("Refresh of %s failed at step %r: %s",
                      resource.key, result.step, result.detail)
            return DispatchOutcome.REFRESH_FAILED

        log.info("Refreshed post %s", resource.key)
        return DispatchOutcome.REFRESHED
