"""Evidence blob storage."""

import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Protocol

from condopay.domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "application/pdf"})
MAX_EVIDENCE_BYTES = 10 * 1024 * 1024


class EvidenceStore(Protocol):
    def store(self, content: bytes, mime: str) -> str:
        ...

    def resolve(self, blob_id: str) -> bytes:
        ...


class LocalEvidenceStore:
    """Keeps evidence files in a local directory, one file per blob."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)

    def _path_for(self, blob_id: str) -> Path:
        try:
            uuid.UUID(blob_id.split(".", 1)[0])
        except ValueError as e:
            raise NotFoundError(f"Evidence '{blob_id}' not found") from e
        return self.base_dir / blob_id

    def store(self, content: bytes, mime: str) -> str:
        """Write ``content`` and return its blob ID.

        Raises:
            ValidationError: If the content is empty, too large or of an
                unsupported type
        """
        if not content:
            raise ValidationError("Evidence file is empty")
        if len(content) > MAX_EVIDENCE_BYTES:
            raise ValidationError(f"Evidence file exceeds {MAX_EVIDENCE_BYTES} bytes")
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"Unsupported evidence type '{mime}'")
        extension = mimetypes.guess_extension(mime) or ""
        blob_id = f"{uuid.uuid4()}{extension}"
        self.base_dir.mkdir(parents=True, exist_ok=True)
        (self.base_dir / blob_id).write_bytes(content)
        logger.info("Stored evidence %s (%d bytes)", blob_id, len(content))
        return blob_id

    def resolve(self, blob_id: str) -> bytes:
        """Read back stored evidence."""
        path = self._path_for(blob_id)
        if not path.is_file():
            raise NotFoundError(f"Evidence '{blob_id}' not found")
        return path.read_bytes()
