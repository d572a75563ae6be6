"""Lifecycle controller — stop every open channel, then end the process."""

from __future__ import annotations

import logging
import os
import signal
from collections.abc import Callable

from postwatch.core.errors import DriveError
from postwatch.core.models import StopReport
from postwatch.core.registry import Registry
from postwatch.providers.drive.base import RemoteStore

log = logging.getLogger(__name__)


def terminate_process() -> None:
    """Ask the running server to shut down.

    uvicorn treats SIGTERM as a graceful shutdown: it stops accepting
    connections and lets in-flight requests finish before exiting.
    """
    log.info("Exiting...")
    os.kill(os.getpid(), signal.SIGTERM)


class LifecycleController:
    """Bulk teardown of the registry's channels."""

    def __init__(
        self,
        registry: Registry,
        store: RemoteStore,
        exit_fn: Callable[[], None] = terminate_process,
    ) -> None:
        self.registry = registry
        self.store = store
        self._exit_fn = exit_fn

    def stop_all(self) -> StopReport:
        """Drain the registry and stop each channel, continuing past failures."""
        resources = self.registry.drain()
        log.info("Stopping %d listener channels", len(resources))

        report = StopReport(attempted=len(resources))
        for resource in resources:
            channel = resource.channel
            try:
                self.store.stop_channel(channel)
                log.debug("Stopped channel %s for %s", channel.id, resource.key)
            except DriveError as e:
                log.error("Error stopping channel %s for %s: %s", channel.id, resource.key, e)
                report.failed.append(channel.id)
            except Exception:
                log.error("Error stopping channel %s for %s", channel.id, resource.key,
                          exc_info=True)
                report.failed.append(channel.id)

        if report.ok:
            log.info("Stopped all %d channels", report.attempted)
        else:
            log.error("Failed to stop %d of %d channels", len(report.failed), report.attempted)
        return report

    def exit(self) -> None:
        self._exit_fn()
