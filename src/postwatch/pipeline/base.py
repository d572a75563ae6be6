"""Refresher Protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from postwatch.core.models import RefreshResult, Resource


@runtime_checkable
class Refresher(Protocol):
    """Contract for whatever republishes a post after it changes."""

    def refresh(self, resource: Resource) -> RefreshResult:
        """Download and republish ``resource``.

        Failures are reported through the result, with ``step`` naming the
        stage that failed and ``detail`` holding diagnostics.
        """
        ...
