"""Content category detection for uploaded files."""

from pathlib import PurePosixPath
from typing import Optional

from notes_parser.logger import get_logger
from notes_parser.models import ContentCategory, FileRecord

logger = get_logger(__name__)


PDF_SIGNATURE = b"%PDF"
PNG_SIGNATURE = b"\x89PNG"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
JPEG_SIGNATURE = b"\xff\xd8\xff"

PPTX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation"
)

MIME_CATEGORIES = {
    "application/pdf": ContentCategory.PDF,
    "application/x-pdf": ContentCategory.PDF,
    PPTX_MIME_TYPE: ContentCategory.PRESENTATION,
}

# Declared types that say nothing about the content; the extension decides
GENERIC_MIME_TYPES = {
    "",
    "application/octet-stream",
    "binary/octet-stream",
    "application/zip",
    "application/x-zip-compressed",
    "application/unknown",
}

EXTENSION_CATEGORIES = {
    ".pdf": ContentCategory.PDF,
    ".pptx": ContentCategory.PRESENTATION,
    ".txt": ContentCategory.PLAIN_TEXT,
    ".text": ContentCategory.PLAIN_TEXT,
    ".md": ContentCategory.PLAIN_TEXT,
    ".markdown": ContentCategory.PLAIN_TEXT,
    ".csv": ContentCategory.PLAIN_TEXT,
    ".png": ContentCategory.IMAGE,
    ".jpg": ContentCategory.IMAGE,
    ".jpeg": ContentCategory.IMAGE,
    ".gif": ContentCategory.IMAGE,
    ".webp": ContentCategory.IMAGE,
    ".bmp": ContentCategory.IMAGE,
    ".tif": ContentCategory.IMAGE,
    ".tiff": ContentCategory.IMAGE,
    ".heic": ContentCategory.IMAGE,
}

UNSUPPORTED_EXTENSIONS = {
    ".doc",
    ".docx",
    ".ppt",
    ".xls",
    ".xlsx",
    ".odt",
    ".odp",
    ".ods",
    ".rtf",
    ".pages",
    ".key",
}

UNSUPPORTED_MIME_TYPES = {
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.oasis.opendocument.text",
    "application/vnd.oasis.opendocument.presentation",
    "application/vnd.oasis.opendocument.spreadsheet",
    "application/rtf",
}


def _normalize_mime(mime_type: Optional[str]) -> str:
    # Drop parameters such as "; charset=utf-8"
    return (mime_type or "").split(";", 1)[0].strip().lower()


def _extension(file_name: str) -> str:
    return PurePosixPath(file_name or "").suffix.lower()


class DocumentDetector:
    """Maps a filename and declared MIME type onto a ContentCategory."""

    def classify(
        self, file_name: str, mime_type: Optional[str], content: bytes = b""
    ) -> ContentCategory:
        """Classify a file.

        The declared MIME type wins when it is specific. Generic or missing
        types fall back to the (case-insensitive) filename extension, and as a
        last resort to the file signature when content is supplied.

        Args:
            file_name: Original filename
            mime_type: MIME type declared by the client, may be empty
            content: Optional leading bytes of the file

        Returns:
            The category; UNKNOWN when nothing matches
        """
        declared = _normalize_mime(mime_type)
        category = self._category_from_mime(declared)
        source = "mime"

        if category is None:
            category = EXTENSION_CATEGORIES.get(_extension(file_name))
            source = "extension"

        if category is None and content:
            category = self._sniff_category(content)
            source = "signature"

        if category is None:
            category = ContentCategory.UNKNOWN
            source = "none"

        logger.debug(
            "Classified file",
            extra_data={
                "file_name": file_name,
                "declared_mime_type": declared or "-",
                "category": category.value,
                "source": source,
            },
        )
        return category

    def classify_record(self, record: FileRecord) -> ContentCategory:
        return self.classify(record.filename, record.mime_type, record.content[:16])

    def is_known_unsupported(self, file_name: str, mime_type: Optional[str]) -> bool:
        """True for formats we recognise but deliberately do not extract."""
        if _normalize_mime(mime_type) in UNSUPPORTED_MIME_TYPES:
            return True
        return _extension(file_name) in UNSUPPORTED_EXTENSIONS

    @staticmethod
    def _category_from_mime(mime_type: str) -> Optional[ContentCategory]:
        if mime_type in GENERIC_MIME_TYPES:
            return None
        if mime_type in MIME_CATEGORIES:
            return MIME_CATEGORIES[mime_type]
        if mime_type.startswith("text/"):
            return ContentCategory.PLAIN_TEXT
        if mime_type.startswith("image/"):
            return ContentCategory.IMAGE
        return None

    @staticmethod
    def _sniff_category(content: bytes) -> Optional[ContentCategory]:
        """Detect category from file signature/magic bytes."""
        if content.startswith(PDF_SIGNATURE):
            return ContentCategory.PDF
        if content.startswith(PNG_SIGNATURE) or content.startswith(JPEG_SIGNATURE):
            return ContentCategory.IMAGE
        if content.startswith(GIF_SIGNATURES):
            return ContentCategory.IMAGE
        return None


def unsupported_extension_label(file_name: str, mime_type: Optional[str]) -> str:
    """Human readable label for a known-unsupported file, used in failure reasons."""
    return _extension(file_name) or _normalize_mime(mime_type) or "unknown"
