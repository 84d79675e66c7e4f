"""
Support ticket attachment storage.

Uploads are written to ``{SUPPORT_UPLOAD_ROOT}/uploads/support/{ticket_id}/``
under a random name that keeps only a sanitized extension. The public
``storage_url`` is the path relative to the upload root.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from uuid import uuid4

from fastapi import UploadFile

from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.server.core.config import settings

logger = get_logger(__name__)

ALLOWED_MIME_PREFIXES = ("image/", "video/")
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
}
ALLOWED_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".rtf",
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic",
    ".mp4", ".mov", ".mkv", ".avi",
}  # fmt: skip

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".txt": "text/plain",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class AttachmentValidationError(Exception):
    """An upload was rejected; the message is safe to show to the user."""


@dataclass
class SavedAttachment:
    file_name: str
    mime_type: Optional[str]
    byte_size: int
    storage_url: str
    path: Path


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def is_allowed_type(filename: str, mime_type: Optional[str]) -> bool:
    extension = Path(filename or "").suffix.lower()
    if mime_type and (mime_type.startswith(ALLOWED_MIME_PREFIXES) or mime_type in ALLOWED_MIME_TYPES):
        return True
    return extension in ALLOWED_EXTENSIONS


class AttachmentStorage:
    """Validates and stores ticket attachments on the local filesystem."""

    def __init__(self, root: Optional[str] = None, max_bytes: Optional[int] = None) -> None:
        self.root = Path(root or settings.support_upload_root)
        self.max_bytes = max_bytes or settings.support_max_attachment_bytes

    def ticket_dir(self, ticket_id: str) -> Path:
        return self.root / "uploads" / "support" / ticket_id

    def resolve(self, ticket_id: str, filename: str) -> Optional[Path]:
        """
        Path of a stored attachment, or None when ``filename`` escapes the
        ticket directory or the file does not exist.
        """
        directory = self.ticket_dir(ticket_id).resolve()
        candidate = (directory / filename).resolve()
        if candidate.parent != directory or not candidate.is_file():
            return None
        return candidate

    async def save(self, ticket_id: str, upload: UploadFile) -> Optional[SavedAttachment]:
        """
        Validate and write one upload.

        Returns:
            The saved attachment, or None for an empty upload

        Raises:
            AttachmentValidationError: Too large or of an unsupported type
        """
        content = await upload.read()
        if not content:
            return None
        if len(content) > self.max_bytes:
            raise AttachmentValidationError(f"Attachments must be {self.max_bytes // (1024 * 1024)}MB or smaller.")

        filename = upload.filename or ""
        mime_type = upload.content_type or None
        if not is_allowed_type(filename, mime_type):
            raise AttachmentValidationError(
                "Unsupported attachment type. Upload images, videos, or document files only."
            )

        extension = re.sub(r"[^a-z0-9.]", "", Path(filename).suffix.lower())
        stored_name = f"{uuid4()}{extension}"
        directory = self.ticket_dir(ticket_id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / stored_name
        path.write_bytes(content)
        logger.debug(f"Stored attachment {stored_name} ({len(content)} bytes) for ticket {ticket_id}")

        return SavedAttachment(
            file_name=filename or stored_name,
            mime_type=mime_type,
            byte_size=len(content),
            storage_url=f"/uploads/support/{ticket_id}/{stored_name}",
            path=path,
        )

    async def save_all(self, ticket_id: str, uploads: Sequence[UploadFile]) -> List[SavedAttachment]:
        """Save every upload; on any failure the files already written are removed."""
        saved: List[SavedAttachment] = []
        try:
            for upload in uploads:
                attachment = await self.save(ticket_id, upload)
                if attachment is not None:
                    saved.append(attachment)
        except Exception:
            self.discard(saved)
            raise
        return saved

    def discard(self, attachments: Sequence[SavedAttachment]) -> None:
        for attachment in attachments:
            try:
                attachment.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove attachment {attachment.path}: {e}")


def get_attachment_storage() -> AttachmentStorage:
    return AttachmentStorage()
