"""Study-material text extraction with OCR fallback and flashcard generation."""

__version__ = "0.1.0"

from notes_parser.aggregator import concatenate_text, normalize_text, results_payload
from notes_parser.config import ExtractorConfig, OCRConfig, ServiceConfig
from notes_parser.detector import DocumentDetector
from notes_parser.exceptions import (
    ConfigurationError,
    ExtractionError,
    FileTooLargeError,
    InputError,
    MalformedDocumentError,
    NotesParserError,
    ServiceUnavailableError,
    UpstreamResponseError,
)
from notes_parser.flashcards import FlashcardGenerator
from notes_parser.handler import DocumentHandler
from notes_parser.models import (
    ContentCategory,
    ExtractionOutcome,
    Failure,
    FileRecord,
    Flashcard,
    Success,
)
from notes_parser.multipart import MultipartReader, read_multipart
from notes_parser.ocr import TesseractRecognizer, VisionRecognizer, build_recognizer
from notes_parser.parser import parse_files

__all__ = [
    # High-level API
    "parse_files",
    # Core classes
    "DocumentHandler",
    "DocumentDetector",
    "MultipartReader",
    "read_multipart",
    "VisionRecognizer",
    "TesseractRecognizer",
    "build_recognizer",
    "FlashcardGenerator",
    "concatenate_text",
    "normalize_text",
    "results_payload",
    # Data models
    "FileRecord",
    "ContentCategory",
    "ExtractionOutcome",
    "Success",
    "Failure",
    "Flashcard",
    # Configuration
    "OCRConfig",
    "ExtractorConfig",
    "ServiceConfig",
    # Exceptions
    "NotesParserError",
    "InputError",
    "FileTooLargeError",
    "ExtractionError",
    "MalformedDocumentError",
    "ServiceUnavailableError",
    "UpstreamResponseError",
    "ConfigurationError",
]
