"""Configuration classes for notes parser."""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_OCR_INSTRUCTION = (
    "Extract legible text from this image. If handwritten, transcribe it as "
    "best as possible. Return only the text."
)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OCRConfig:
    """Configuration for optical recognition.

    Two backends are available: the remote vision service (default) and a
    local Tesseract engine for environments without network access.

    Examples:
        >>> # Remote vision model, key from the environment
        >>> config = OCRConfig.from_env()

        >>> # Local Tesseract with extra languages
        >>> config = OCRConfig(provider="tesseract", languages="eng+fra")
    """

    provider: str = "vision"
    """Recognition backend: "vision" (remote chat-completions API) or "tesseract"."""

    api_key: Optional[str] = None
    """API key for the vision service. Required only when provider is "vision"."""

    base_url: str = "https://api.openai.com/v1"
    """Base URL of the chat-completions compatible service."""

    model: str = "gpt-4o-mini"
    """Vision-capable model name."""

    instruction: str = DEFAULT_OCR_INSTRUCTION
    """Fixed instruction sent alongside every image."""

    temperature: float = 0.2

    timeout_seconds: float = 60.0
    """Timeout for a single recognition request. No retries are made."""

    fallback_mime_type: str = "image/jpeg"
    """MIME type declared for payloads that are not recognizably an image."""

    tesseract_cmd: str = "tesseract"
    """Path to tesseract binary. Default: "tesseract" (assumes in PATH)."""

    tessdata_prefix: Optional[str] = None
    """Optional path to tessdata directory. If None, uses system default."""

    languages: str = "eng"
    """OCR languages in Tesseract format (e.g., "eng", "eng+fra")."""

    psm_mode: int = 6
    """Page segmentation mode (0-13). Default: 6 (uniform block of text)."""

    @classmethod
    def from_env(cls) -> "OCRConfig":
        return cls(
            provider=os.environ.get("OCR_PROVIDER", cls.provider),
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            base_url=os.environ.get("OPENAI_BASE_URL", cls.base_url),
            model=os.environ.get("OCR_MODEL", cls.model),
            tesseract_cmd=os.environ.get("TESSERACT_CMD", cls.tesseract_cmd),
            tessdata_prefix=os.environ.get("TESSDATA_PREFIX") or None,
            languages=os.environ.get("OCR_LANGUAGES", cls.languages),
        )


@dataclass
class ExtractorConfig:
    """Configuration for the extraction pipeline."""

    max_file_bytes: int = 25 * 1024 * 1024
    """Upper bound for a single uploaded part. Larger parts fail the read."""

    max_text_chars: int = 12_000
    """Hard cap on the aggregated text blob."""

    max_concurrency: int = 4
    """Number of files extracted at the same time within one request."""

    ocr_presentation_media: bool = True
    """Run recognition over images embedded in slide decks."""

    max_media_images: int = 20
    """Upper bound on recognition calls spent on embedded deck images."""

    @classmethod
    def from_env(cls) -> "ExtractorConfig":
        return cls(
            max_file_bytes=_env_int("MAX_FILE_BYTES", cls.max_file_bytes),
            max_text_chars=_env_int("MAX_TEXT_CHARS", cls.max_text_chars),
            max_concurrency=_env_int("MAX_CONCURRENCY", cls.max_concurrency),
            ocr_presentation_media=_env_bool(
                "OCR_PRESENTATION_MEDIA", cls.ocr_presentation_media
            ),
            max_media_images=_env_int("MAX_MEDIA_IMAGES", cls.max_media_images),
        )


@dataclass
class ServiceConfig:
    """Configuration for the HTTP service and the flashcard generator."""

    ocr: OCRConfig = field(default_factory=OCRConfig)
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)

    extract_mode: str = "results"
    """Default response shape of the extract endpoint: "results" or "text"."""

    flashcard_model: str = "gpt-4o-mini"
    max_cards: int = 20
    cors_origins: list[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        origins = os.environ.get("CORS_ALLOW_ORIGINS", "")
        return cls(
            ocr=OCRConfig.from_env(),
            extractor=ExtractorConfig.from_env(),
            extract_mode=os.environ.get("EXTRACT_RESPONSE_MODE", cls.extract_mode),
            flashcard_model=os.environ.get("FLASHCARD_MODEL", cls.flashcard_model),
            max_cards=_env_int("MAX_CARDS", cls.max_cards),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.environ.get("LOG_LEVEL", cls.log_level),
        )
