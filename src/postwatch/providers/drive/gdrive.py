"""Google Drive store: listings, downloads and push-notification channels."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from postwatch.core.errors import CredentialsError, DriveError
from postwatch.core.models import (
    DOCX_MIME,
    FOLDER_MIME,
    GOOGLE_DOC_MIME,
    JPEG_MIME,
    PNG_MIME,
    Channel,
    RemoteFile,
)

log = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

# Page size for listing calls; every page is fetched regardless.
_PAGE_SIZE = 100

_RAW_MIMES = {DOCX_MIME, JPEG_MIME, PNG_MIME}


def _quote(value: str) -> str:
    """Escape a value for use inside a Drive query string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _mime_clause(mime_types: tuple[str, ...]) -> str:
    if not mime_types:
        return ""
    parts = " or ".join(f"mimeType = '{m}'" for m in mime_types)
    return f"({parts}) and "


def save_token(credential: str, token_json: str) -> str:
    """Store an authorized-user token where ``credential`` says. Returns the location."""
    if credential == "keyring":
        import keyring

        keyring.set_password("postwatch", "gdrive_token", token_json)
        return "keyring (postwatch/gdrive_token)"

    path = Path(credential).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(token_json)
    return str(path)


def authorize(client_secret: Path, credential: str = "keyring", open_browser: bool = True) -> str:
    """Run the OAuth consent flow for a desktop client and store the token.

    Args:
        client_secret: OAuth client file downloaded from the Google Cloud console.
        credential: "keyring" or a token file path, as in the drive config.
        open_browser: Open the consent page automatically.

    Returns:
        Where the token was stored.
    """
    try:
        from google_auth_oauthlib.flow import InstalledAppFlow
    except ImportError as e:
        raise CredentialsError(f"google-auth-oauthlib not installed: {e}") from e

    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(client_secret), SCOPES)
    except (OSError, ValueError) as e:
        raise CredentialsError(f"Unable to read client secret file {client_secret}: {e}") from e

    creds = flow.run_local_server(port=0, open_browser=open_browser)
    location = save_token(credential, creds.to_json())
    log.info("Saved Google Drive token to %s", location)
    return location


class GDriveStore:
    """Drive v3 implementation of the RemoteStore protocol.

    The underlying httplib2 transport is not thread-safe, so each worker
    thread builds its own service from the shared credentials.
    """

    def __init__(self, config: dict | None = None, service=None) -> None:
        config = config or {}
        self._credential = config.get("credential", "keyring")
        self._service = service  # injected service is used by every thread
        self._creds = None
        self._creds_lock = threading.Lock()
        self._local = threading.local()

    @property
    def name(self) -> str:
        return "gdrive"

    def _load_credentials(self):
        """Load authorized-user credentials from the keyring or a token file."""
        from google.oauth2.credentials import Credentials

        if self._credential == "keyring":
            import keyring

            token_json = keyring.get_password("postwatch", "gdrive_token")
            if not token_json:
                raise CredentialsError(
                    "No Google Drive token in keyring. Run 'postwatch auth' first."
                )
            info = json.loads(token_json)
        else:
            path = Path(self._credential).expanduser()
            try:
                info = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise CredentialsError(
                    f"Unable to read token file {path}: {e}. Run 'postwatch auth' first."
                ) from e

        try:
            return Credentials.from_authorized_user_info(info, SCOPES)
        except ValueError as e:
            raise CredentialsError(f"Invalid Google Drive token: {e}") from e

    def _credentials(self):
        with self._creds_lock:
            if self._creds is None:
                self._creds = self._load_credentials()
            return self._creds

    def _get_service(self):
        """Return this thread's Google Drive API service, building it on first use."""
        if self._service is not None:
            return self._service
        service = getattr(self._local, "service", None)
        if service is not None:
            return service
        try:
            from googleapiclient.discovery import build
        except ImportError as e:
            raise CredentialsError(f"Google Drive SDK not installed: {e}") from e

        service = build("drive", "v3", credentials=self._credentials(), cache_discovery=False)
        self._local.service = service
        log.debug("Initialized Google Drive service for %s", threading.current_thread().name)
        return service

    def _list(self, query: str) -> list[RemoteFile]:
        """Run a files.list query and follow nextPageToken to the end."""
        service = self._get_service()
        files: list[RemoteFile] = []
        page_token = None
        while True:
            try:
                result = service.files().list(
                    q=query,
                    pageSize=_PAGE_SIZE,
                    pageToken=page_token,
                    fields="nextPageToken, files(id, name, mimeType)",
                ).execute()
            except Exception as e:
                raise DriveError(f"Drive listing failed ({query}): {e}") from e

            for item in result.get("files", []):
                files.append(RemoteFile(
                    id=item["id"],
                    name=item.get("name", ""),
                    mime_type=item.get("mimeType", ""),
                ))
            page_token = result.get("nextPageToken")
            if not page_token:
                return files

    def find_folder(self, name: str) -> RemoteFile | None:
        query = (
            f"mimeType = '{FOLDER_MIME}' and name = '{_quote(name)}' "
            f"and trashed = false"
        )
        folders = self._list(query)
        if len(folders) > 1:
            log.warning("Found %d folders named %r, using the first", len(folders), name)
        return folders[0] if folders else None

    def list_children(
        self,
        parent_id: str,
        mime_types: tuple[str, ...] = (),
    ) -> list[RemoteFile]:
        query = (
            f"{_mime_clause(mime_types)}'{_quote(parent_id)}' in parents "
            f"and trashed = false"
        )
        return self._list(query)

    def download(self, file_id: str, mime_type: str) -> bytes:
        service = self._get_service()
        if mime_type in _RAW_MIMES:
            request = service.files().get_media(fileId=file_id)
        elif mime_type == GOOGLE_DOC_MIME:
            request = service.files().export_media(fileId=file_id, mimeType=DOCX_MIME)
        else:
            raise DriveError(f"Unsupported mime type: {mime_type}")

        try:
            return request.execute()
        except Exception as e:
            raise DriveError(f"Failed to fetch {file_id} from Google Drive: {e}") from e

    def watch(self, file_id: str, body: dict) -> dict:
        service = self._get_service()
        try:
            return service.files().watch(fileId=file_id, body=body).execute()
        except Exception as e:
            raise DriveError(f"Failed to watch {file_id}: {e}") from e

    def stop_channel(self, channel: Channel) -> None:
        service = self._get_service()
        body = {"id": channel.id, "resourceId": channel.remote_resource_id}
        try:
            service.channels().stop(body=body).execute()
        except Exception as e:
            raise DriveError(f"Failed to stop channel {channel.id}: {e}") from e
