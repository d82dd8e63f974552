"""
Optical Recognition Backend Tests
"""
import asyncio
import base64
import json

import httpx
import pytest

from notes_parser.config import OCRConfig
from notes_parser.exceptions import ConfigurationError, ServiceUnavailableError
from notes_parser.ocr import (
    TesseractRecognizer,
    VisionRecognizer,
    build_recognizer,
    payload_mime_type,
)


def vision_recognizer(handler, **config):
    config.setdefault("api_key", "sk-test")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VisionRecognizer(OCRConfig(**config), client=client)


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestVisionRecognizer:
    """Requests to the remote vision service"""

    def test_request_shape_and_trimmed_answer(self, png_bytes):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return completion("  Krebs cycle\n  ")

        recognizer = vision_recognizer(handler, base_url="https://llm.example/v1/")
        text = asyncio.run(recognizer.recognize(png_bytes, "image/png"))

        assert text == "Krebs cycle"
        assert captured["url"] == "https://llm.example/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        content = captured["body"]["messages"][0]["content"]
        assert content[0]["type"] == "text"
        assert "handwritten" in content[0]["text"]
        expected_url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        assert content[1]["image_url"]["url"] == expected_url

    def test_upstream_error_message_preserved(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Invalid image data"}})

        with pytest.raises(ServiceUnavailableError) as excinfo:
            asyncio.run(vision_recognizer(handler).recognize(b"abc", "image/jpeg"))

        assert str(excinfo.value) == "Invalid image data"
        assert excinfo.value.status_code == 400

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ServiceUnavailableError):
            asyncio.run(vision_recognizer(handler).recognize(b"abc", "image/jpeg"))

    def test_empty_answer(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        assert asyncio.run(vision_recognizer(handler).recognize(b"abc", "image/jpeg")) == ""

    def test_missing_api_key(self):
        calls = []

        def handler(request):
            calls.append(request)
            return completion("never")

        recognizer = vision_recognizer(handler, api_key=None)
        with pytest.raises(ConfigurationError):
            asyncio.run(recognizer.recognize(b"abc", "image/jpeg"))
        assert calls == []


class TestTesseractRecognizer:
    def test_runs_pytesseract(self, monkeypatch, png_bytes):
        seen = {}

        def fake_image_to_string(image, lang, config):
            seen["lang"] = lang
            seen["config"] = config
            return "  Ohm's law \n"

        monkeypatch.setattr("pytesseract.image_to_string", fake_image_to_string)
        recognizer = TesseractRecognizer(OCRConfig(provider="tesseract", languages="eng+deu"))

        assert asyncio.run(recognizer.recognize(png_bytes, "image/png")) == "Ohm's law"
        assert seen == {"lang": "eng+deu", "config": "--psm 6"}

    def test_unreadable_image(self):
        recognizer = TesseractRecognizer()
        with pytest.raises(ServiceUnavailableError):
            asyncio.run(recognizer.recognize(b"not an image", "image/png"))


class TestHelpers:
    def test_build_recognizer(self):
        assert isinstance(build_recognizer(OCRConfig()), VisionRecognizer)
        assert isinstance(build_recognizer(OCRConfig(provider="tesseract")), TesseractRecognizer)
        with pytest.raises(ConfigurationError):
            build_recognizer(OCRConfig(provider="crystal-ball"))

    def test_payload_mime_type(self, png_bytes):
        assert payload_mime_type(png_bytes, "image/webp", "image/jpeg") == "image/webp"
        assert payload_mime_type(png_bytes, "application/pdf", "image/jpeg") == "image/png"
        assert payload_mime_type(b"%PDF-1.4", "application/pdf", "image/jpeg") == "image/jpeg"
