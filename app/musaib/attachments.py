"""
Binds uploaded justification documents to portal records.

Uploads are best-effort: a failing backend yields "no document" instead of
an error, and the enclosing create/update proceeds without the attachment.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.musaib.errors import AttachmentError
from app.musaib.storage import Storage, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class UploadResult:
    name: str
    url: str
    path: str
    size: int


def uploaded_file_from_request(f: FileStorage | None) -> UploadedFile | None:
    """Read a multipart file field; an empty field counts as no file."""
    if f is None or not f.filename:
        return None
    return UploadedFile(
        filename=f.filename,
        data=f.read(),
        content_type=(f.mimetype or "application/octet-stream").strip(),
    )


def build_storage_key(category: str, filename: str, upload_date: date | None = None) -> str:
    if upload_date is None:
        upload_date = date.today()
    safe_filename = secure_filename(filename) or "document.bin"
    return f"{category}/{upload_date.isoformat()}/{uuid.uuid4().hex[:12]}-{safe_filename}"


def upload_file(storage: Storage, file: UploadedFile, category: str) -> UploadResult | None:
    if not file.data:
        logger.warning(
            "%s: empty upload skipped (category=%s filename=%s)", AttachmentError.code, category, file.filename
        )
        return None
    key = build_storage_key(category, file.filename)
    try:
        storage.put_bytes(key, file.data, content_type=file.content_type)
        url = storage.url(key)
    except (StorageError, OSError) as e:
        logger.warning(
            "%s: upload failed (category=%s filename=%s): %s", AttachmentError.code, category, file.filename, e
        )
        return None
    return UploadResult(name=file.filename, url=url, path=key, size=len(file.data))


def attach(storage: Storage, file: UploadedFile, category: str) -> dict[str, Any] | None:
    """Upload `file` and return the sub-record stored on the owning row, or None."""
    result = upload_file(storage, file, category)
    if result is None:
        return None
    return {
        "name": result.name,
        "url": result.url,
        "path": result.path,
        "size": result.size,
        "uploaded_at": datetime.utcnow().isoformat(),
    }
