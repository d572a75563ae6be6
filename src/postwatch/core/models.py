"""Core data models for postwatch."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# --- Drive MIME types ---

FOLDER_MIME = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
JPEG_MIME = "image/jpeg"
PNG_MIME = "image/png"

POST_MIMES = (DOCX_MIME, GOOGLE_DOC_MIME)
ASSET_MIMES = (JPEG_MIME, PNG_MIME)


# --- Enums ---


class DispatchOutcome(str, Enum):
    IGNORED_STATE = "ignored_state"
    IGNORED_CHANGE = "ignored_change"
    UNKNOWN_CHANNEL = "unknown_channel"
    DEBOUNCED = "debounced"
    REFRESHED = "refreshed"
    REFRESH_FAILED = "refresh_failed"


# --- Helpers ---


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Models ---


@dataclass(frozen=True)
class RemoteFile:
    """A file or folder as returned by a Drive listing."""

    id: str
    name: str
    mime_type: str = ""


@dataclass(frozen=True)
class CatalogEntry:
    """One post found while walking root/author/date."""

    author: str
    date: str
    file_id: str
    filename: str
    mime_type: str
    asset: RemoteFile | None = None


@dataclass
class Channel:
    """A Drive push-notification channel bound to one file."""

    id: str
    resource_id: str  # Drive file id being watched
    address: str
    expiration: datetime
    remote_resource_id: str = ""  # opaque resourceId echoed by Drive, needed to stop

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _now()) >= self.expiration

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "address": self.address,
            "expiration": self.expiration.isoformat(),
        }


@dataclass
class Resource:
    """A watched post: identity, its channel and refresh state.

    ``last_refreshed`` is a monotonic clock reading (None = never) and must
    only be read or written while holding ``lock``.
    """

    author: str
    date: str
    file_id: str
    filename: str
    mime_type: str
    channel: Channel
    asset: RemoteFile | None = None
    last_refreshed: float | None = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @classmethod
    def from_entry(cls, entry: CatalogEntry, channel: Channel) -> Resource:
        return cls(
            author=entry.author,
            date=entry.date,
            file_id=entry.file_id,
            filename=entry.filename,
            mime_type=entry.mime_type,
            channel=channel,
            asset=entry.asset,
        )

    @property
    def key(self) -> str:
        return f"{self.author}/{self.date}"


@dataclass
class RefreshResult:
    """Outcome of one refresh pipeline run."""

    success: bool
    step: str = ""  # step that failed, or the last step run
    detail: str = ""


@dataclass
class StopReport:
    """Outcome of stopping every registered channel."""

    attempted: int = 0
    failed: list[str] = field(default_factory=list)  # channel ids

    @property
    def ok(self) -> bool:
        return not self.failed
