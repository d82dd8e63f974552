"""Streaming multipart/form-data reader.

Feeds request body chunks into python-multipart's push parser and collects
every file-bearing part into a FileRecord. Parts are buffered in memory only;
nothing is written to disk.
"""

from typing import AsyncIterable, Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from notes_parser.exceptions import FileTooLargeError, InputError
from notes_parser.logger import Timer, get_logger
from notes_parser.models import FileRecord

logger = get_logger(__name__)

DEFAULT_FILE_NAME = "unnamed"
DEFAULT_MIME_TYPE = "application/octet-stream"


class _Part:
    def __init__(self) -> None:
        self.headers: dict[bytes, bytes] = {}
        self.field_name: Optional[str] = None
        self.filename: Optional[str] = None
        self.mime_type = DEFAULT_MIME_TYPE
        self.chunks: list[bytes] = []
        self.size = 0

    @property
    def is_file(self) -> bool:
        return self.filename is not None


class MultipartReader:
    """Collects uploaded files from a multipart body.

    Any number of file parts is accepted regardless of field name; plain form
    fields are ignored. A part larger than ``max_file_bytes`` fails the read.
    """

    def __init__(self, content_type: str, max_file_bytes: int):
        ctype, params = parse_options_header(content_type or "")
        if ctype.lower() != b"multipart/form-data":
            raise InputError("Expected a multipart/form-data request body")
        boundary = params.get(b"boundary")
        if not boundary:
            raise InputError("Missing multipart boundary")

        self.max_file_bytes = max_file_bytes
        self.files: list[FileRecord] = []
        self.bytes_read = 0
        self._finished = False
        self._part: Optional[_Part] = None
        self._header_field = b""
        self._header_value = b""
        self._parser = MultipartParser(
            boundary,
            {
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    def _on_part_begin(self) -> None:
        self._part = _Part()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._part.headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        part = self._part
        _, options = parse_options_header(part.headers.get(b"content-disposition", b""))
        if b"name" in options:
            part.field_name = options[b"name"].decode("utf-8", errors="replace")
        if b"filename" in options:
            part.filename = (
                options[b"filename"].decode("utf-8", errors="replace")
                or DEFAULT_FILE_NAME
            )
        content_type = part.headers.get(b"content-type", b"").decode(
            "latin-1"
        ).strip()
        if content_type:
            part.mime_type = content_type

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        part = self._part
        if not part.is_file:
            return
        part.size += end - start
        if part.size > self.max_file_bytes:
            raise FileTooLargeError(part.filename, self.max_file_bytes)
        part.chunks.append(data[start:end])

    def _on_part_end(self) -> None:
        part = self._part
        self._part = None
        if part is None or not part.is_file:
            return
        self.files.append(
            FileRecord(
                filename=part.filename,
                mime_type=part.mime_type,
                content=b"".join(part.chunks),
            )
        )
        logger.debug(
            "Received file part",
            extra_data={
                "field_name": part.field_name,
                "file_name": part.filename,
                "mime_type": part.mime_type,
                "file_size_bytes": part.size,
            },
        )

    def _on_end(self) -> None:
        self._finished = True

    def feed(self, chunk: bytes) -> None:
        """Push one chunk of the body through the parser."""
        if not chunk:
            return
        self.bytes_read += len(chunk)
        try:
            self._parser.write(chunk)
        except MultipartParseError as exc:
            raise InputError(f"Malformed multipart body: {exc}") from exc

    def close(self) -> list[FileRecord]:
        """Finish parsing and return the collected files in arrival order."""
        try:
            self._parser.finalize()
        except MultipartParseError as exc:
            raise InputError(f"Malformed multipart body: {exc}") from exc
        if not self._finished and self.bytes_read:
            raise InputError("Malformed multipart body: missing closing boundary")
        return self.files

    async def read(self, stream: AsyncIterable[bytes]) -> list[FileRecord]:
        """Consume the whole body stream and return the uploaded files."""
        with Timer("multipart_read") as timer:
            async for chunk in stream:
                self.feed(chunk)
            files = self.close()

        logger.info(
            "Multipart body consumed",
            extra_data={
                "body_bytes": self.bytes_read,
                "file_count": len(files),
                "read_time_ms": timer.get_elapsed_ms(),
            },
        )
        return files


async def read_multipart(
    stream: AsyncIterable[bytes], content_type: str, max_file_bytes: int
) -> list[FileRecord]:
    return await MultipartReader(content_type, max_file_bytes).read(stream)

