"""Attachment storage over Django's ``default_storage``."""

import logging
import os
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone

from core.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

UPLOAD_DIR = "tickets"


@dataclass(frozen=True)
class StoredFile:
    url: str
    name: str
    filename: str
    mime_type: str
    size: int


def check_upload_limits(files: list) -> None:
    max_files = settings.TICKET_ATTACHMENT_MAX_FILES
    max_bytes = settings.TICKET_ATTACHMENT_MAX_BYTES
    if len(files) > max_files:
        raise ValidationFailed(f"At most {max_files} files can be uploaded at once")
    for upload in files:
        if (upload.size or 0) > max_bytes:
            raise ValidationFailed(f"{upload.name} exceeds the {max_bytes} byte upload limit")


def store_upload(upload, directory: str = UPLOAD_DIR) -> StoredFile:
    _, ext = os.path.splitext(upload.name)
    path = f"{directory}/{timezone.now():%Y/%m}/{uuid.uuid4().hex}{ext.lower()}"
    name = default_storage.save(path, upload)
    return StoredFile(
        url=default_storage.url(name),
        name=name,
        filename=os.path.basename(upload.name),
        mime_type=getattr(upload, "content_type", "") or "",
        size=upload.size or 0,
    )


def delete_upload(name: str) -> None:
    """Remove a stored file; a missing file only logs."""
    try:
        default_storage.delete(name)
    except OSError:
        logger.warning("could not delete stored file %s", name, exc_info=True)


__all__ = ["StoredFile", "check_upload_limits", "delete_upload", "store_upload"]
