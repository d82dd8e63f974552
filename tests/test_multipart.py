"""
Multipart Stream Reader Tests
"""
import asyncio

import pytest

from notes_parser.exceptions import FileTooLargeError, InputError
from notes_parser.multipart import MultipartReader, read_multipart


def chunked(data, size):
    return [data[i : i + size] for i in range(0, len(data), size)]


def read_multipart_bytes(chunks, content_type, max_file_bytes):
    reader = MultipartReader(content_type, max_file_bytes)
    for chunk in chunks:
        reader.feed(chunk)
    return reader.close()


class TestMultipartReader:
    """Files are collected in order, plain fields are ignored"""

    def test_files_and_fields(self, build_multipart):
        body, content_type = build_multipart(
            [
                ("file", "lecture.pdf", "application/pdf", b"%PDF-1.4 data"),
                ("comment", None, None, b"please hurry"),
                ("attachment_2", "notes.txt", "text/plain", b"Line 1\r\nLine 2"),
            ]
        )

        files = read_multipart_bytes([body], content_type, max_file_bytes=1024)

        assert [f.filename for f in files] == ["lecture.pdf", "notes.txt"]
        assert files[0].mime_type == "application/pdf"
        assert files[0].content == b"%PDF-1.4 data"
        assert files[1].content == b"Line 1\r\nLine 2"

    def test_small_chunks_give_same_result(self, build_multipart):
        payload = bytes(range(256)) * 4
        body, content_type = build_multipart([("file", "blob.bin", "image/png", payload)])

        files = read_multipart_bytes(chunked(body, 7), content_type, max_file_bytes=4096)

        assert len(files) == 1
        assert files[0].content == payload

    def test_async_stream(self, build_multipart):
        body, content_type = build_multipart([("file", "a.txt", "text/plain", b"hello")])

        async def stream():
            for chunk in chunked(body, 16):
                yield chunk

        files = asyncio.run(read_multipart(stream(), content_type, max_file_bytes=1024))

        assert files[0].content == b"hello"

    def test_defaults_for_missing_metadata(self, build_multipart):
        body, content_type = build_multipart([("file", "", None, b"data")])

        files = read_multipart_bytes([body], content_type, max_file_bytes=1024)

        assert files[0].filename == "unnamed"
        assert files[0].mime_type == "application/octet-stream"

    def test_no_file_parts(self, build_multipart):
        body, content_type = build_multipart([("text", None, None, b"only a field")])
        assert read_multipart_bytes([body], content_type, max_file_bytes=1024) == []

    def test_too_large(self, build_multipart):
        body, content_type = build_multipart([("file", "big.pdf", "application/pdf", b"x" * 100)])

        with pytest.raises(FileTooLargeError):
            read_multipart_bytes(chunked(body, 10), content_type, max_file_bytes=50)

    def test_limit_is_per_part(self, build_multipart):
        body, content_type = build_multipart(
            [
                ("file", "a.txt", "text/plain", b"x" * 40),
                ("file", "b.txt", "text/plain", b"y" * 40),
            ]
        )
        files = read_multipart_bytes([body], content_type, max_file_bytes=50)
        assert len(files) == 2

    def test_not_multipart(self):
        with pytest.raises(InputError):
            MultipartReader("application/json", max_file_bytes=1024)

    def test_missing_boundary(self):
        with pytest.raises(InputError):
            MultipartReader("multipart/form-data", max_file_bytes=1024)

    def test_truncated_body(self, build_multipart):
        body, content_type = build_multipart([("file", "a.txt", "text/plain", b"hello")])

        with pytest.raises(InputError):
            read_multipart_bytes([body[:-30]], content_type, max_file_bytes=1024)
