"""postwatch — watch Google Drive posts and republish them on change."""

__version__ = "0.1.0"
