"""Exception hierarchy for postwatch."""


class PostwatchError(Exception):
    """Base error for postwatch."""


class CatalogError(PostwatchError):
    """The watched folder tree could not be enumerated (fatal at startup)."""


class DriveError(PostwatchError):
    """A Google Drive call failed or returned something unusable."""


class CredentialsError(PostwatchError):
    """No usable Google Drive credentials."""
