"""Per-file extraction orchestration with optical-recognition fallback."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from notes_parser.config import ExtractorConfig, OCRConfig
from notes_parser.detector import DocumentDetector, unsupported_extension_label
from notes_parser.exceptions import NotesParserError
from notes_parser.extractor import ExtractionStrategy, build_strategies
from notes_parser.logger import ContextLogger, Timer, get_logger
from notes_parser.models import (
    ContentCategory,
    ExtractionOutcome,
    Failure,
    FileRecord,
    Success,
)
from notes_parser.ocr import TextRecognizer, build_recognizer, payload_mime_type

logger = get_logger(__name__)

NO_TEXT_REASON = "No extractable text found"
INTERNAL_ERROR_REASON = "Internal error while extracting file"


@dataclass
class Attempt:
    """Result of one strategy run: text, or the error that stopped it."""

    text: str = ""
    error: Optional[Exception] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())


async def run_attempt(strategy_name: str, coro, log: ContextLogger) -> Attempt:
    """Await one strategy and capture its failure instead of raising.

    Library errors a strategy does not wrap count as a failed attempt too.
    """
    try:
        return Attempt(text=await coro)
    except Exception as exc:
        log.warning(
            "Extraction attempt failed",
            extra_data={
                "strategy": strategy_name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return Attempt(error=exc)


class DocumentHandler:
    """Runs the classify, primary, fallback sequence for every uploaded file.

    Every record yields exactly one outcome and a failing record never affects
    its siblings. Files are extracted concurrently, bounded by
    ``ExtractorConfig.max_concurrency``; outcomes keep input order.
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        detector: Optional[DocumentDetector] = None,
        strategies: Optional[dict[ContentCategory, ExtractionStrategy]] = None,
        config: Optional[ExtractorConfig] = None,
        ocr_config: Optional[OCRConfig] = None,
    ) -> None:
        """Initialize document handler.

        Args:
            recognizer: Optical recognition boundary. If None, built from ocr_config.
            detector: Category detector. If None, creates default.
            strategies: Primary strategy per category. If None, the defaults.
            config: Extraction configuration.
            ocr_config: Recognition configuration.
        """
        self.config = config or ExtractorConfig()
        self.ocr_config = ocr_config or OCRConfig()
        self.recognizer = recognizer or build_recognizer(self.ocr_config)
        self.detector = detector or DocumentDetector()
        self.strategies = strategies or build_strategies(
            self.recognizer, config=self.config, ocr_config=self.ocr_config
        )

    def allows_fallback(self, record: FileRecord, category: ContentCategory) -> bool:
        """Recognition is retried for anything but images and known-unsupported files.

        Only files no strategy claimed can be vetoed as known unsupported.
        """
        if category is ContentCategory.IMAGE:
            return False
        if category is not ContentCategory.UNKNOWN:
            return True
        return not self.detector.is_known_unsupported(record.filename, record.mime_type)

    async def process(self, record: FileRecord) -> ExtractionOutcome:
        """Extract one file, falling back to recognition when needed."""
        log = logger.bind(file_name=record.filename)
        with Timer("file_extraction") as timer:
            category = self.detector.classify_record(record)
            log = log.bind(category=category.value)

            primary = Attempt()
            strategy = self.strategies.get(category)
            if strategy is not None:
                primary = await run_attempt(strategy.name, strategy.extract(record), log)

            if primary.has_text:
                outcome: ExtractionOutcome = Success(record.filename, primary.text)
            elif self.allows_fallback(record, category):
                fallback = await self._fallback(record, primary, log)
                if fallback.has_text:
                    outcome = Success(record.filename, fallback.text)
                else:
                    outcome = self._failure(record, fallback)
            elif category is ContentCategory.IMAGE:
                outcome = self._failure(record, primary)
            else:
                label = unsupported_extension_label(record.filename, record.mime_type)
                outcome = Failure(record.filename, f"Unsupported file format: {label}")

        extra = {"file_size_bytes": record.size, "extraction_time_ms": timer.get_elapsed_ms()}
        if isinstance(outcome, Success):
            log.info(
                "Extracted text from file",
                extra_data={**extra, "character_count": len(outcome.text)},
            )
        else:
            log.warning("No text extracted from file", extra_data={**extra, "reason": outcome.reason})
        return outcome

    async def _fallback(self, record: FileRecord, primary: Attempt, log: ContextLogger) -> Attempt:
        log.info(
            "Primary extraction empty, trying OCR fallback",
            extra_data={
                "primary_error": type(primary.error).__name__ if primary.error else None,
            },
        )
        mime_type = payload_mime_type(
            record.content, record.mime_type, self.ocr_config.fallback_mime_type
        )
        return await run_attempt(
            "ocr_fallback", self.recognizer.recognize(record.content, mime_type), log
        )

    @staticmethod
    def _failure(record: FileRecord, attempt: Attempt) -> Failure:
        if isinstance(attempt.error, NotesParserError):
            return Failure(record.filename, str(attempt.error) or NO_TEXT_REASON)
        if attempt.error is not None:
            return Failure(record.filename, INTERNAL_ERROR_REASON)
        return Failure(record.filename, NO_TEXT_REASON)

    async def _process_isolated(
        self, record: FileRecord, semaphore: asyncio.Semaphore
    ) -> ExtractionOutcome:
        async with semaphore:
            try:
                return await self.process(record)
            except Exception as exc:
                # A bug in classification or bookkeeping must not take down the sibling files
                logger.exception(
                    "Unexpected error while extracting file",
                    extra_data={"file_name": record.filename, "error_type": type(exc).__name__},
                )
                return Failure(record.filename, INTERNAL_ERROR_REASON)

    async def process_all(self, records: Sequence[FileRecord]) -> list[ExtractionOutcome]:
        """Extract every record; result order matches input order."""
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrency))
        with Timer("batch_extraction") as timer:
            outcomes = await asyncio.gather(
                *(self._process_isolated(record, semaphore) for record in records)
            )

        logger.info(
            "Batch extraction completed",
            extra_data={
                "file_count": len(records),
                "succeeded": sum(1 for o in outcomes if isinstance(o, Success)),
                "batch_time_ms": timer.get_elapsed_ms(),
            },
        )
        return list(outcomes)
