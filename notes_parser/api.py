"""
HTTP API.

Exposes the extraction pipeline and the flashcard generator:

- POST /api/extract   multipart upload -> {"results": [...]} or {"text": ...}
- POST /api/generate  {"text": ...}    -> {"cards": [...]}
- GET  /api/health
"""
import os
import platform
from typing import Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from notes_parser import __version__
from notes_parser.aggregator import concatenate_text, results_payload
from notes_parser.config import ServiceConfig
from notes_parser.exceptions import (
    ConfigurationError,
    FileTooLargeError,
    InputError,
    NotesParserError,
    ServiceUnavailableError,
)
from notes_parser.flashcards import FlashcardGenerator
from notes_parser.handler import DocumentHandler
from notes_parser.logger import REQUEST_ID_HEADER, get_logger, set_request_id, setup_logging
from notes_parser.multipart import read_multipart
from notes_parser.ocr import TextRecognizer, build_recognizer

logger = get_logger(__name__)

EXTRACT_MODES = ("results", "text")


class GenerateRequest(BaseModel):
    text: str = ""


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and turns unhandled errors into a 500."""

    async def dispatch(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception occurred",
                extra_data={"method": request.method, "path": request.url.path},
            )
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error"},
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def error_status(exc: NotesParserError) -> int:
    if isinstance(exc, FileTooLargeError):
        return status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    if isinstance(exc, InputError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ServiceUnavailableError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def notes_parser_error_handler(request: Request, exc: NotesParserError):
    status_code = error_status(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        extra_data={
            "path": request.url.path,
            "status_code": status_code,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
    )
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body"},
    )


def create_app(
    config: Optional[ServiceConfig] = None,
    recognizer: Optional[TextRecognizer] = None,
    generator: Optional[FlashcardGenerator] = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Service configuration. If None, read from the environment.
        recognizer: OCR boundary. If None, built from config.ocr.
        generator: Flashcard client. If None, built from config.
    """
    config = config or ServiceConfig.from_env()
    recognizer = recognizer or build_recognizer(config.ocr)
    handler = DocumentHandler(
        recognizer=recognizer, config=config.extractor, ocr_config=config.ocr
    )
    generator = generator or FlashcardGenerator.from_config(
        config.ocr,
        model=config.flashcard_model,
        max_cards=config.max_cards,
        max_text_chars=config.extractor.max_text_chars,
    )

    app = FastAPI(
        title="notes-parser",
        description="Study material text extraction and flashcard generation",
        version=__version__,
    )
    app.state.config = config
    app.state.handler = handler
    app.state.generator = generator

    app.add_middleware(RequestContextMiddleware)
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    app.add_exception_handler(NotesParserError, notes_parser_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.options("/api/extract")
    @app.options("/api/generate")
    async def preflight() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.post("/api/extract")
    async def extract(request: Request, mode: Optional[str] = None):
        mode = (mode or config.extract_mode).lower()
        if mode not in EXTRACT_MODES:
            raise InputError(f"Unknown mode: {mode}")

        files = await read_multipart(
            request.stream(),
            request.headers.get("content-type", ""),
            config.extractor.max_file_bytes,
        )
        if not files:
            raise InputError("No files uploaded")

        outcomes = await handler.process_all(files)

        if mode == "text":
            max_chars = config.extractor.max_text_chars
            return {
                "text": concatenate_text(outcomes, max_chars=max_chars),
                "files": len(outcomes),
                "max_chars": max_chars,
            }
        return {"results": results_payload(outcomes)}

    @app.post("/api/generate")
    async def generate(payload: GenerateRequest):
        cards = await generator.generate(payload.text)
        return {"cards": [card.to_dict() for card in cards]}

    @app.get("/api/health")
    async def health():
        return {
            "ok": True,
            "has_key": bool(config.ocr.api_key),
            "python": platform.python_version(),
            "ocr_provider": config.ocr.provider,
            "version": __version__,
        }

    return app


def main() -> None:
    import uvicorn

    config = ServiceConfig.from_env()
    setup_logging(config.log_level)
    try:
        app = create_app(config)
    except ConfigurationError as exc:
        logger.error("Invalid configuration", extra_data={"error": str(exc)})
        raise SystemExit(1) from exc

    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
