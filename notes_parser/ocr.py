"""Optical recognition backends.

Recognition is the last-resort strategy of the pipeline and also the primary
strategy for images. Two backends implement the same ``recognize`` coroutine:

- ``VisionRecognizer`` sends the bytes inline to a vision-capable
  chat-completions service together with a fixed transcription instruction.
- ``TesseractRecognizer`` runs a local Tesseract engine in a worker thread.

Neither backend retries; a failed call surfaces as ServiceUnavailableError for
that file or image only.
"""

import asyncio
import base64
import io
import os
from typing import Any, Optional, Protocol

import httpx
import pytesseract
from PIL import Image, UnidentifiedImageError

from notes_parser.config import OCRConfig
from notes_parser.exceptions import ConfigurationError, ServiceUnavailableError
from notes_parser.logger import Timer, get_logger

logger = get_logger(__name__)


class TextRecognizer(Protocol):
    """Boundary to an optical recognition service."""

    async def recognize(self, data: bytes, mime_type: str) -> str:
        ...


def detect_image_mime(data: bytes) -> Optional[str]:
    """Return the MIME type Pillow recognises for ``data``, if any."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if not image_format:
        return None
    return Image.MIME.get(image_format.upper())


def payload_mime_type(data: bytes, declared: Optional[str], default: str) -> str:
    """Pick the MIME type announced for an inline recognition payload."""
    declared = (declared or "").split(";", 1)[0].strip().lower()
    if declared.startswith("image/"):
        return declared
    return detect_image_mime(data) or default


def _upstream_error_message(response: httpx.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return default


def _message_content(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class VisionRecognizer:
    """Recognition through a remote vision-capable text service."""

    def __init__(
        self,
        config: Optional[OCRConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize recognizer.

        Args:
            config: OCR configuration. If None, uses defaults.
            client: Shared HTTP client. If None, a client is opened per call.
        """
        self.config = config or OCRConfig()
        self._client = client

    def build_request(self, data: bytes, mime_type: str) -> dict[str, Any]:
        encoded = base64.b64encode(data).decode("ascii")
        return {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.config.instruction},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
            "temperature": self.config.temperature,
        }

    async def recognize(self, data: bytes, mime_type: str) -> str:
        """Transcribe the text visible in an image.

        Args:
            data: Raw image bytes
            mime_type: MIME type announced in the inline data URI

        Returns:
            Recognised text, stripped; empty when the service found nothing

        Raises:
            ConfigurationError: If no API key is configured
            ServiceUnavailableError: If the call fails or returns non-success
        """
        if not self.config.api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY")

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        body = self.build_request(data, mime_type)

        with Timer("vision_ocr") as timer:
            try:
                if self._client is not None:
                    response = await self._client.post(url, json=body, headers=headers)
                else:
                    async with httpx.AsyncClient(
                        timeout=self.config.timeout_seconds
                    ) as client:
                        response = await client.post(url, json=body, headers=headers)
            except httpx.HTTPError as exc:
                logger.error(
                    "Vision service request failed",
                    extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                )
                raise ServiceUnavailableError(
                    f"OCR service request failed: {exc}"
                ) from exc

        if response.status_code >= 400:
            message = _upstream_error_message(response, "OCR service error")
            logger.warning(
                "Vision service returned an error",
                extra_data={
                    "status_code": response.status_code,
                    "error": message,
                    "ocr_time_ms": timer.get_elapsed_ms(),
                },
            )
            raise ServiceUnavailableError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceUnavailableError("OCR service returned invalid JSON") from exc

        text = _message_content(payload).strip()
        logger.info(
            "Vision OCR completed",
            extra_data={
                "mime_type": mime_type,
                "payload_bytes": len(data),
                "characters_extracted": len(text),
                "ocr_time_ms": timer.get_elapsed_ms(),
            },
        )
        return text


class TesseractRecognizer:
    """Recognition with a local Tesseract installation."""

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig(provider="tesseract")

        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        if self.config.tessdata_prefix:
            os.environ["TESSDATA_PREFIX"] = self.config.tessdata_prefix

    def _recognize_sync(self, data: bytes) -> str:
        with Image.open(io.BytesIO(data)) as image:
            return pytesseract.image_to_string(
                image,
                lang=self.config.languages,
                config=f"--psm {self.config.psm_mode}",
            )

    async def recognize(self, data: bytes, mime_type: str) -> str:
        with Timer("tesseract_ocr") as timer:
            try:
                text = await asyncio.to_thread(self._recognize_sync, data)
            except (UnidentifiedImageError, OSError, pytesseract.TesseractError) as exc:
                logger.warning(
                    "Tesseract OCR failed",
                    extra_data={
                        "mime_type": mime_type,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                raise ServiceUnavailableError(f"Tesseract OCR failed: {exc}") from exc

        result = text.strip()
        logger.info(
            "Tesseract OCR completed",
            extra_data={
                "mime_type": mime_type,
                "characters_extracted": len(result),
                "ocr_time_ms": timer.get_elapsed_ms(),
            },
        )
        return result


def build_recognizer(
    config: Optional[OCRConfig] = None, client: Optional[httpx.AsyncClient] = None
) -> TextRecognizer:
    """Create the recognizer selected by ``config.provider``."""
    config = config or OCRConfig()
    provider = config.provider.lower()
    if provider == "tesseract":
        return TesseractRecognizer(config)
    if provider == "vision":
        return VisionRecognizer(config, client=client)
    raise ConfigurationError(f"Unknown OCR provider: {config.provider}")
