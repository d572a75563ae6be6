"""PublishPipeline — download a post and run the operator's publish commands.

Steps, in order; the first failure stops the run:
  1. download   post document into <drive_dir>/<author>/<date>/
  2. asset      cover image, only when not already present locally
  3. convert    post document -> html into <html_dir>/posts/<author>/<date>
  4. thumbnail  only for posts with a cover image
  5. homepage   regenerate the site index
  6. publish    sync the html tree to the web root
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path, PurePosixPath

from postwatch.core.errors import DriveError
from postwatch.core.models import GOOGLE_DOC_MIME, RefreshResult, Resource
from postwatch.providers.drive.base import RemoteStore

log = logging.getLogger(__name__)

COMMAND_STEPS = ("convert", "thumbnail", "homepage", "publish")


class StepError(Exception):
    """A pipeline step failed."""

    def __init__(self, step: str, detail: str) -> None:
        super().__init__(f"{step}: {detail}")
        self.step = step
        self.detail = detail


def local_filename(resource: Resource) -> str:
    """Filename the post is saved under; native Google Docs become .docx."""
    name = resource.filename
    if resource.mime_type == GOOGLE_DOC_MIME and not name.lower().endswith(".docx"):
        name = f"{name}.docx"
    return name


class PublishPipeline:
    """Refresher that republishes a post through external commands."""

    def __init__(self, store: RemoteStore, config: dict | None = None) -> None:
        config = config or {}
        self.store = store
        self.drive_dir = Path(config.get("drive_dir", "~/html/drive")).expanduser()
        self.html_root = Path(config.get("html_dir", "~/html/html")).expanduser()
        self.timeout = config.get("step_timeout_seconds", 600)
        self.commands: dict[str, list[str]] = config.get("commands", {}) or {}

    def post_dir(self, resource: Resource) -> Path:
        return self.drive_dir / resource.author / resource.date

    def html_dir(self, resource: Resource) -> Path:
        return self.html_root / "posts" / resource.author / resource.date

    def refresh(self, resource: Resource) -> RefreshResult:
        log.info("Downloading post %s from Google Drive", resource.key)
        step = ""
        try:
            step = "download"
            post_path = self._download_post(resource)

            step = "asset"
            image_path = self._ensure_asset(resource)

            step = "prepare"
            html_dir = self.html_dir(resource)
            html_dir.mkdir(parents=True, exist_ok=True)

            values = {
                "post_path": str(post_path),
                "html_dir": str(html_dir),
                "html_root": str(self.html_root),
                "image_path": str(image_path) if image_path else "",
                "title": PurePosixPath(resource.filename).stem,
                "author": resource.author,
                "date": resource.date,
            }
            for step in COMMAND_STEPS:
                if step == "thumbnail" and image_path is None:
                    continue
                self._run_step(step, values)
        except StepError as e:
            return RefreshResult(success=False, step=e.step, detail=e.detail)
        except (DriveError, OSError) as e:
            return RefreshResult(success=False, step=step, detail=str(e))

        return RefreshResult(success=True, step="publish")

    def _download_post(self, resource: Resource) -> Path:
        directory = self.post_dir(resource)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / local_filename(resource)

        content = self.store.download(resource.file_id, resource.mime_type)
        path.write_bytes(content)
        log.info("Saved post file %s", path)
        return path

    def _ensure_asset(self, resource: Resource) -> Path | None:
        if resource.asset is None:
            return None
        path = self.post_dir(resource) / resource.asset.name
        if not path.exists():
            log.info("Downloading post image %s", path)
            content = self.store.download(resource.asset.id, resource.asset.mime_type)
            path.write_bytes(content)
        return path

    def _run_step(self, step: str, values: dict[str, str]) -> None:
        template = self.commands.get(step)
        if not template:
            log.debug("No %s command configured, skipping", step)
            return

        try:
            args = [str(Path(template[0]).expanduser())]
            args += [part.format(**values) for part in template[1:]]
        except (KeyError, IndexError) as e:
            raise StepError(step, f"bad command template {template!r}: {e}") from e

        log.info("Running %s: %s", step, " ".join(args))
        try:
            proc = subprocess.run(
                args, capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise StepError(step, f"timed out after {e.timeout}s") from e
        except OSError as e:
            raise StepError(step, str(e)) from e

        if proc.returncode != 0:
            raise StepError(step, f"exit {proc.returncode}: {proc.stderr.strip()}")
        log.debug("%s output: %s", step, proc.stdout.strip())
