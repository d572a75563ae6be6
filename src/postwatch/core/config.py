"""Configuration loader for postwatch."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "drive": {
        "root_folder": "attic-posts",
        # "keyring" or a path to an authorized-user token.json
        "credential": "keyring",
        # OAuth client file for `postwatch auth`; None = <home>/credentials.json
        "client_secret": None,
    },
    "catalog": {
        # 0 = no limit
        "max_authors": 0,
    },
    "channels": {
        "address": "https://localhost/api",
        "ttl_seconds": 3600,
        "id_length": 16,
    },
    "dispatch": {
        "cooldown_seconds": 60,
    },
    "pipeline": {
        "drive_dir": "~/html/drive",
        "html_dir": "~/html/html",
        "step_timeout_seconds": 600,
        "refresh_on_subscribe": True,
        "commands": {
            "convert": ["~/html/bin/convert_posts.zsh", "post", "{post_path}", "{html_dir}"],
            "thumbnail": [
                "~/html/bin/make_thumbnail.zsh",
                "{title}", "{author}", "{image_path}", "{html_dir}",
            ],
            "homepage": ["~/html/bin/gen_homepage.zsh"],
            "publish": ["rsync", "-rl", "--delete", "{html_root}", "/usr/local/www"],
        },
    },
    "server": {
        "host": "127.0.0.1",
        "port": 9000,
        # upper bound on waiting for in-flight refreshes at shutdown
        "graceful_shutdown_seconds": 30,
    },
    "log_level": "info",
    "log_file": None,
}


def resolve_home(home: Path | None = None) -> Path:
    """Resolve the home directory: explicit > POSTWATCH_HOME > ~/postwatch."""
    if home is None:
        home = Path(os.environ.get("POSTWATCH_HOME") or "~/postwatch")
    return Path(home).expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml inside the home directory."""
    return resolve_home(home) / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Read config.yaml and overlay it on ``DEFAULTS``.

    A missing file yields the defaults. An unreadable or malformed file is
    logged and ignored, so the service still starts with defaults.
    """
    path = path or config_path()
    if not path.exists():
        return merge_config(DEFAULTS, {})

    try:
        user_config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        log.warning("Failed to read config at %s, using defaults", path, exc_info=True)
        return merge_config(DEFAULTS, {})

    if not isinstance(user_config, dict):
        log.warning("Config at %s is not a mapping, using defaults", path)
        return merge_config(DEFAULTS, {})
    return merge_config(DEFAULTS, user_config)


def merge_config(defaults: dict, overrides: dict) -> dict:
    """Overlay ``overrides`` on ``defaults`` section by section; inputs are not modified."""
    merged = {
        key: merge_config(value, {}) if isinstance(value, dict) else value
        for key, value in defaults.items()
    }
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged
