from fastapi import UploadFile
from datetime import datetime, timezone
from pathlib import Path
import logging
import secrets

from welfare.core.config import settings
from welfare.core.exceptions import InvalidArgument, UpstreamFailure
from welfare.modules.storage.schemas import StoredDocument, DocumentCategory

logger = logging.getLogger(__name__)

UPLOADS_URL_PREFIX = "/uploads"


class DocumentStorage:
    """
    Stores KYC images and proof-of-payment files on the local filesystem
    and hands back a URL under the app's /uploads static mount.
    """

    def __init__(self, root: str = None, base_url: str = None):
        self.root = Path(root or settings.LOCAL_STORAGE_PATH)
        self.base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    def _validate(self, filename: str, size: int) -> str:
        if not filename:
            raise InvalidArgument("File name missing")

        file_ext = Path(filename).suffix.lower()
        allowed = settings.allowed_upload_extensions
        if file_ext not in allowed:
            raise InvalidArgument(
                f"File type {file_ext or '(none)'} not allowed. Allowed types: {', '.join(sorted(allowed))}"
            )
        if size == 0:
            raise InvalidArgument("File is empty")
        if size > self.max_bytes:
            raise InvalidArgument(f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit")
        return file_ext

    @staticmethod
    def _generate_name(owner_id: int, category: DocumentCategory, file_ext: str) -> str:
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        return f"{owner_id}_{category.value}_{timestamp}_{secrets.token_hex(4)}{file_ext}"

    def url_for(self, relative_path: str) -> str:
        return f"{self.base_url}{UPLOADS_URL_PREFIX}/{relative_path}"

    async def save(self, file: UploadFile, owner_id: int, category: DocumentCategory) -> StoredDocument:
        """Validate and persist an upload, returning its path and public URL"""
        content = await file.read()
        file_ext = self._validate(file.filename, len(content))

        filename = self._generate_name(owner_id, category, file_ext)
        upload_dir = self.root / category.value
        relative_path = f"{category.value}/{filename}"

        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
            with open(upload_dir / filename, "wb") as f:
                f.write(content)
        except OSError as e:
            raise UpstreamFailure(f"Could not store document: {e}") from e

        logger.info(f"Stored {category.value} document for member {owner_id} at {relative_path}")
        return StoredDocument(
            path=relative_path,
            url=self.url_for(relative_path),
            content_type=file.content_type,
            size=len(content),
        )


def get_document_storage() -> DocumentStorage:
    """FastAPI dependency; tests override it with a temporary root"""
    return DocumentStorage()
