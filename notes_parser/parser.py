"""High-level API for extracting notes from local files."""

import asyncio
import mimetypes
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from notes_parser.aggregator import concatenate_text
from notes_parser.config import ExtractorConfig, OCRConfig
from notes_parser.handler import DocumentHandler
from notes_parser.models import ExtractionOutcome, FileRecord
from notes_parser.ocr import TextRecognizer

FileInput = Union[tuple[str, bytes], tuple[str, bytes, str]]


def _record_from_path(path: Path) -> FileRecord:
    if not path.exists():
        raise ValueError(f"File not found: {path}")
    guessed, _ = mimetypes.guess_type(str(path))
    return FileRecord(
        filename=path.name,
        mime_type=guessed or "application/octet-stream",
        content=path.read_bytes(),
    )


def _record_from_tuple(item: FileInput) -> FileRecord:
    if len(item) == 3:
        file_name, content, mime_type = item
    else:
        file_name, content = item
        mime_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    return FileRecord(filename=file_name, mime_type=mime_type, content=content)


def parse_files(
    paths: Optional[Iterable[Union[str, Path]]] = None,
    files: Optional[Sequence[FileInput]] = None,
    mode: str = "results",
    config: Optional[ExtractorConfig] = None,
    ocr_config: Optional[OCRConfig] = None,
    recognizer: Optional[TextRecognizer] = None,
) -> Union[list[ExtractionOutcome], str]:
    """Extract text from local files or in-memory bytes.

    Runs the same pipeline as the HTTP extract endpoint.

    Args:
        paths: File paths to read
        files: ``(file_name, bytes)`` or ``(file_name, bytes, mime_type)`` tuples
        mode: "results" for one outcome per file, "text" for the aggregated blob
        config: Extraction configuration
        ocr_config: Recognition configuration (defaults read from the environment)
        recognizer: Custom recognition backend

    Returns:
        List of Success/Failure outcomes, or a single normalized string

    Raises:
        ValueError: If no input is given, a path does not exist or mode is unknown

    Examples:
        >>> outcomes = parse_files(paths=["lecture.pdf", "slides.pptx"])
        >>> notes = parse_files(files=[("notes.txt", b"ATP synthase")], mode="text")
    """
    if mode not in ("results", "text"):
        raise ValueError(f"Unknown mode: {mode}")

    records = [_record_from_path(Path(p)) for p in paths or ()]
    records.extend(_record_from_tuple(item) for item in files or ())
    if not records:
        raise ValueError("Must provide paths or files")

    config = config or ExtractorConfig()
    handler = DocumentHandler(
        recognizer=recognizer,
        config=config,
        ocr_config=ocr_config or OCRConfig.from_env(),
    )
    outcomes = asyncio.run(handler.process_all(records))

    if mode == "text":
        return concatenate_text(outcomes, max_chars=config.max_text_chars)
    return outcomes
