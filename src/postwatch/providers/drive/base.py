"""RemoteStore Protocol — the remote storage capability the core relies on."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from postwatch.core.models import Channel, RemoteFile


@runtime_checkable
class RemoteStore(Protocol):
    """Contract for a hierarchical remote store with push notifications."""

    @property
    def name(self) -> str:
        """Unique store ID: 'gdrive', 'fake', etc."""
        ...

    def find_folder(self, name: str) -> RemoteFile | None:
        """Find a folder by exact name anywhere in the store."""
        ...

    def list_children(
        self,
        parent_id: str,
        mime_types: tuple[str, ...] = (),
    ) -> list[RemoteFile]:
        """List every non-trashed child of a folder, following all pages.

        ``mime_types`` restricts the result to those types; empty = any.
        """
        ...

    def download(self, file_id: str, mime_type: str) -> bytes:
        """Fetch file content. Native documents are exported as .docx."""
        ...

    def watch(self, file_id: str, body: dict) -> dict:
        """Open a push-notification channel. Returns the echoed channel."""
        ...

    def stop_channel(self, channel: Channel) -> None:
        """Stop a push-notification channel."""
        ...
