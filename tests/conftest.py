"""
Test Configuration and Fixtures
"""
import io
import zipfile

import fitz
import pytest
from PIL import Image

SLIDE_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<p:sld xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main">'
    "<p:cSld><p:spTree>{shapes}</p:spTree></p:cSld></p:sld>"
)
SHAPE_TEMPLATE = "<p:sp><p:txBody><a:p>{runs}</a:p></p:txBody></p:sp>"


class FakeRecognizer:
    """Stands in for the vision service and records every call."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def recognize(self, data, mime_type):
        self.calls.append((data, mime_type))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def recognizer():
    return FakeRecognizer(text="recognised text")


@pytest.fixture
def silent_recognizer():
    """Recognizer that finds nothing."""
    return FakeRecognizer(text="")


@pytest.fixture
def fake_recognizer_cls():
    return FakeRecognizer


@pytest.fixture
def make_pdf():
    """Build a PDF with one page per given string (empty string = blank page)."""

    def _make(*pages):
        document = fitz.open()
        for text in pages or ("",):
            page = document.new_page()
            if text:
                page.insert_text((72, 72), text)
        data = document.tobytes()
        document.close()
        return data

    return _make


@pytest.fixture
def make_encrypted_pdf():
    """Build a one-page PDF that needs a user password to open."""

    def _make(text="Confidential lecture"):
        document = fitz.open()
        document.new_page().insert_text((72, 72), text)
        data = document.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="student"
        )
        document.close()
        return data

    return _make


@pytest.fixture
def make_pptx():
    """Build a .pptx archive from {slide_number: [runs]} plus optional media."""

    def _make(slides, media=None):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("[Content_Types].xml", "<Types/>")
            archive.writestr("ppt/presentation.xml", "<p:presentation/>")
            for number, runs in slides.items():
                run_markup = "".join(f"<a:r><a:t>{run}</a:t></a:r>" for run in runs)
                archive.writestr(
                    f"ppt/slides/slide{number}.xml",
                    SLIDE_TEMPLATE.format(shapes=SHAPE_TEMPLATE.format(runs=run_markup)),
                )
                archive.writestr(
                    f"ppt/slides/_rels/slide{number}.xml.rels", "<Relationships/>"
                )
            for name, data in (media or {}).items():
                archive.writestr(f"ppt/media/{name}", data)
        return buffer.getvalue()

    return _make


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def build_multipart():
    """Encode (field, filename, content_type, data) parts as a multipart body."""

    def _build(parts, boundary="----notesparserboundary"):
        body = b""
        for field_name, file_name, content_type, data in parts:
            disposition = f'form-data; name="{field_name}"'
            if file_name is not None:
                disposition += f'; filename="{file_name}"'
            body += f"--{boundary}\r\nContent-Disposition: {disposition}\r\n".encode()
            if content_type:
                body += f"Content-Type: {content_type}\r\n".encode()
            body += b"\r\n" + data + b"\r\n"
        body += f"--{boundary}--\r\n".encode()
        return body, f"multipart/form-data; boundary={boundary}"

    return _build
