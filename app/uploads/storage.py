"""
Uploaded media storage
Files are written under UPLOAD_DIR and served by the static mount at /uploads
"""

import logging
import os
import re
import shutil
import time
import uuid
from typing import Iterable, Optional

from fastapi import HTTPException, UploadFile

from app.config import UPLOAD_DIR, MAX_UPLOAD_MB, IMAGE_EXTENSIONS, VIDEO_EXTENSIONS

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def ensure_upload_dir(subdir: str = "") -> str:
    path = os.path.join(UPLOAD_DIR, subdir)
    os.makedirs(path, exist_ok=True)
    return path


def _unique_name(original: str) -> str:
    base = _UNSAFE_CHARS.sub("_", os.path.basename(original or "file"))
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}-{base}"


def save_upload(file: UploadFile, allowed: Iterable[str], subdir: str = "") -> str:
    """
    Persist an uploaded file and return its public `/uploads/...` path

    Raises 400 for a disallowed extension and 413 above MAX_UPLOAD_MB.
    """
    _, ext = os.path.splitext(file.filename or "")
    if ext.lower() not in allowed:
        raise HTTPException(status_code=400, detail=f"File type {ext or 'unknown'} not allowed")

    directory = ensure_upload_dir(subdir)
    filename = _unique_name(file.filename)
    target = os.path.join(directory, filename)

    with open(target, "wb") as out:
        shutil.copyfileobj(file.file, out)

    if os.path.getsize(target) > MAX_UPLOAD_MB * 1024 * 1024:
        os.remove(target)
        raise HTTPException(status_code=413, detail=f"File too large. Max {MAX_UPLOAD_MB}MB allowed.")

    public = "/".join(part for part in ("/uploads", subdir, filename) if part)
    logger.info("Stored upload %s", public)
    return public


def save_image(file: Optional[UploadFile], subdir: str = "") -> Optional[str]:
    if file is None or not file.filename:
        return None
    return save_upload(file, IMAGE_EXTENSIONS, subdir)


def save_video(file: UploadFile) -> str:
    return save_upload(file, VIDEO_EXTENSIONS)
