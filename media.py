"""
Media upload collaborator.

Handlers spool an incoming ``UploadFile`` to a temporary local path and hand
that path to the storage, which returns a descriptor with at least ``url``
(and ``duration`` for video files) or ``None`` when the upload failed.
"""

import mimetypes
import os
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request, UploadFile

from logger import logger


class LocalMediaStorage:
    """Stores media under ``upload_dir`` and serves it below ``url_prefix``."""

    def __init__(self, upload_dir: str, url_prefix: str = "/static"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        for sub in ("videos", "images", "files"):
            (self.upload_dir / sub).mkdir(parents=True, exist_ok=True)

    def probe_duration(self, path: Path) -> Optional[float]:
        # No probing backend for local files; callers store 0 when unknown.
        return None

    def upload(self, local_path: Optional[str]) -> Optional[Dict[str, Any]]:
        if not local_path:
            return None
        source = Path(local_path)
        if not source.exists():
            logger.error(f"Upload source '{local_path}' does not exist")
            return None

        mime = mimetypes.guess_type(source.name)[0] or "application/octet-stream"
        if mime.startswith("video/"):
            resource_type, sub = "video", "videos"
        elif mime.startswith("image/"):
            resource_type, sub = "image", "images"
        else:
            resource_type, sub = "raw", "files"

        public_id = str(ObjectId())
        filename = f"{public_id}{source.suffix}"
        destination = self.upload_dir / sub / filename
        try:
            size = source.stat().st_size
            shutil.move(str(source), str(destination))
        except OSError as e:
            logger.error(f"Failed to store upload '{local_path}': {e}")
            if source.exists():
                os.remove(source)
            return None

        result = {
            "public_id": public_id,
            "url": f"{self.url_prefix}/{sub}/{filename}",
            "resource_type": resource_type,
            "bytes": size,
        }
        if resource_type == "video":
            result["duration"] = self.probe_duration(destination)
        logger.info(f"Stored {resource_type} upload as {result['url']}")
        return result

    def delete(self, url: str) -> None:
        """Remove a stored file given the url ``upload`` returned for it."""
        if not url or not url.startswith(self.url_prefix + "/"):
            return
        path = self.upload_dir / url[len(self.url_prefix) + 1:]
        if path.is_file():
            path.unlink()
            logger.info(f"Removed stored upload {url}")


def get_media_storage(request: Request) -> LocalMediaStorage:
    return request.app.state.media


def save_to_temp(file: UploadFile, temp_dir: str) -> str:
    """Copy an incoming upload to a local temporary file and return its path."""
    directory = Path(temp_dir)
    directory.mkdir(parents=True, exist_ok=True)
    temp_file_path = directory / f"{uuid.uuid4()}_{Path(file.filename or 'upload').name}"
    with temp_file_path.open("wb") as buffer:
        shutil.copyfileobj(file.file, buffer)
    return str(temp_file_path)


def upload_file(storage, file: Optional[UploadFile], temp_dir: str) -> Optional[Dict[str, Any]]:
    """Push an optional upload through the storage; ``None`` when absent or failed."""
    if file is None or not file.filename:
        return None
    return storage.upload(save_to_temp(file, temp_dir))
