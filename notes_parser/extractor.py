"""Per-category text extraction strategies.

Each strategy turns the bytes of one FileRecord into plain text and raises an
ExtractionError subclass when the container cannot be read. Strategies never
decide about fallback; that is the orchestrator's job.
"""

import asyncio
import html
import io
import mimetypes
import re
import zipfile
import zlib
from typing import Optional, Protocol

import fitz  # PyMuPDF

from notes_parser.config import ExtractorConfig, OCRConfig
from notes_parser.exceptions import (
    ConfigurationError,
    MalformedDocumentError,
    ServiceUnavailableError,
)
from notes_parser.logger import Timer, get_logger
from notes_parser.models import ContentCategory, FileRecord
from notes_parser.ocr import TextRecognizer, payload_mime_type

logger = get_logger(__name__)

SLIDE_ENTRY_PATTERN = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
MEDIA_ENTRY_PATTERN = re.compile(
    r"^ppt/media/[^/]+\.(?:png|jpe?g|gif|bmp|webp|tiff?)$", re.IGNORECASE
)
TEXT_RUN_PATTERN = re.compile(r"<a:t(?:\s[^>]*)?>(.*?)</a:t>", re.DOTALL)
WHITESPACE_PATTERN = re.compile(r"\s+")
DIGITS_PATTERN = re.compile(r"(\d+)")

# Errors zipfile raises for damaged, encrypted or exotic members
ARCHIVE_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    NotImplementedError,
    RuntimeError,
    EOFError,
)


class ExtractionStrategy(Protocol):
    name: str

    async def extract(self, record: FileRecord) -> str:
        ...


class PdfTextExtractor:
    """Native PDF text extraction with PyMuPDF."""

    name = "pdf_text"

    async def extract(self, record: FileRecord) -> str:
        return await asyncio.to_thread(self._extract_sync, record)

    def _extract_sync(self, record: FileRecord) -> str:
        with Timer("pdf_native_extraction") as timer:
            try:
                document = fitz.open(stream=record.content, filetype="pdf")
            except (fitz.FileDataError, RuntimeError, ValueError) as exc:
                raise MalformedDocumentError(
                    f"Not a valid PDF document: {exc}"
                ) from exc

            if document.needs_pass:
                document.close()
                raise MalformedDocumentError("PDF is encrypted and needs a password")

            try:
                page_count = len(document)
                pages = []
                for page in document:
                    page_text = page.get_text("text").strip()
                    if page_text:
                        pages.append(page_text)
            except (RuntimeError, ValueError) as exc:
                raise MalformedDocumentError(f"Failed to read PDF pages: {exc}") from exc
            finally:
                document.close()

        text = "\n\n".join(pages)
        logger.debug(
            "PDF native text extraction completed",
            extra_data={
                "file_name": record.filename,
                "page_count": page_count,
                "pages_with_text": len(pages),
                "characters_extracted": len(text),
                "extraction_time_ms": timer.get_elapsed_ms(),
            },
        )
        return text


def _slide_text(markup: str) -> str:
    runs = []
    for match in TEXT_RUN_PATTERN.finditer(markup):
        run = WHITESPACE_PATTERN.sub(" ", html.unescape(match.group(1))).strip()
        if run:
            runs.append(run)
    return " ".join(runs)


def _numeric_key(entry_name: str) -> tuple[int, str]:
    numbers = DIGITS_PATTERN.findall(entry_name.rsplit("/", 1)[-1])
    return (int(numbers[-1]) if numbers else 0, entry_name)


class PresentationTextExtractor:
    """Text from .pptx decks: slide markup first, then embedded images.

    Slides are ordered by the number in their entry name, so slide10 follows
    slide2. Any unreadable member fails the whole file.
    """

    name = "presentation_text"

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        config: Optional[ExtractorConfig] = None,
        ocr_config: Optional[OCRConfig] = None,
    ):
        self.recognizer = recognizer
        self.config = config or ExtractorConfig()
        self.ocr_config = ocr_config or OCRConfig()

    async def extract(self, record: FileRecord) -> str:
        slides, media = await asyncio.to_thread(self._read_archive, record)
        parts = list(slides)

        if media:
            parts.extend(await self._recognize_media(record, media))

        return "\n\n".join(parts)

    def _read_archive(
        self, record: FileRecord
    ) -> tuple[list[str], list[tuple[str, bytes]]]:
        try:
            archive = zipfile.ZipFile(io.BytesIO(record.content))
        except (zipfile.BadZipFile, ValueError) as exc:
            raise MalformedDocumentError(f"Not a valid presentation archive: {exc}") from exc

        want_media = self.recognizer is not None and self.config.ocr_presentation_media
        with archive, Timer("presentation_extraction") as timer:
            names = archive.namelist()
            slide_entries = sorted(
                (int(m.group(1)), name)
                for name in names
                if (m := SLIDE_ENTRY_PATTERN.match(name))
            )
            media_entries = sorted(
                (name for name in names if MEDIA_ENTRY_PATTERN.match(name)),
                key=_numeric_key,
            )

            try:
                slides = []
                for _, name in slide_entries:
                    markup = archive.read(name).decode("utf-8", errors="replace")
                    text = _slide_text(markup)
                    if text:
                        slides.append(text)

                media = []
                if want_media:
                    for name in media_entries[: self.config.max_media_images]:
                        media.append((name, archive.read(name)))
            except ARCHIVE_READ_ERRORS as exc:
                raise MalformedDocumentError(
                    f"Unreadable entry in presentation archive: {exc}"
                ) from exc

        logger.debug(
            "Presentation markup scan completed",
            extra_data={
                "file_name": record.filename,
                "slide_count": len(slide_entries),
                "slides_with_text": len(slides),
                "media_count": len(media_entries),
                "extraction_time_ms": timer.get_elapsed_ms(),
            },
        )
        if want_media and len(media_entries) > len(media):
            logger.info(
                "Skipping embedded images beyond limit",
                extra_data={
                    "file_name": record.filename,
                    "media_count": len(media_entries),
                    "limit": self.config.max_media_images,
                },
            )
        return slides, media

    async def _recognize_media(
        self, record: FileRecord, media: list[tuple[str, bytes]]
    ) -> list[str]:
        texts = []
        for name, data in media:
            guessed, _ = mimetypes.guess_type(name)
            mime_type = payload_mime_type(
                data, guessed, self.ocr_config.fallback_mime_type
            )
            try:
                text = await self.recognizer.recognize(data, mime_type)
            except (ServiceUnavailableError, ConfigurationError) as exc:
                # One image failing must not cost the slide text already read
                logger.warning(
                    "OCR failed for embedded image",
                    extra_data={
                        "file_name": record.filename,
                        "entry": name,
                        "error": str(exc),
                    },
                )
                continue
            if text.strip():
                texts.append(text.strip())
        return texts


class PlainTextExtractor:
    name = "plain_text"

    async def extract(self, record: FileRecord) -> str:
        return record.content.decode("utf-8", errors="replace")


class ImageTextExtractor:
    """Images go straight to optical recognition."""

    name = "image_ocr"

    def __init__(self, recognizer: TextRecognizer, ocr_config: Optional[OCRConfig] = None):
        self.recognizer = recognizer
        self.ocr_config = ocr_config or OCRConfig()

    async def extract(self, record: FileRecord) -> str:
        mime_type = payload_mime_type(
            record.content, record.mime_type, self.ocr_config.fallback_mime_type
        )
        return await self.recognizer.recognize(record.content, mime_type)


def build_strategies(
    recognizer: TextRecognizer,
    config: Optional[ExtractorConfig] = None,
    ocr_config: Optional[OCRConfig] = None,
) -> dict[ContentCategory, ExtractionStrategy]:
    """Primary strategy per category. UNKNOWN deliberately has none."""
    return {
        ContentCategory.PDF: PdfTextExtractor(),
        ContentCategory.PRESENTATION: PresentationTextExtractor(
            recognizer, config=config, ocr_config=ocr_config
        ),
        ContentCategory.PLAIN_TEXT: PlainTextExtractor(),
        ContentCategory.IMAGE: ImageTextExtractor(recognizer, ocr_config=ocr_config),
    }
