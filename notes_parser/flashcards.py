"""Flashcard generation through a chat-completions language model."""

import json
from typing import Any, Optional

import httpx

from notes_parser.aggregator import normalize_text
from notes_parser.config import OCRConfig
from notes_parser.exceptions import (
    ConfigurationError,
    InputError,
    ServiceUnavailableError,
    UpstreamResponseError,
)
from notes_parser.logger import Timer, get_logger
from notes_parser.models import Flashcard

logger = get_logger(__name__)

PROMPT_TEMPLATE = """Turn the following notes into concise flashcards.
Return JSON with the shape:
{{ "cards": [ {{ "front": "Q or term", "back": "answer" }}, ... ] }}
Keep cards short and specific. 8-15 cards max.

NOTES:
{notes}"""


def parse_cards(content: Any, max_cards: int) -> list[Flashcard]:
    """Interpret the model's JSON answer as a list of flashcards.

    Accepts a bare array or an object wrapping one, preferring the "cards"
    key. Entries without a non-empty front and back are dropped.
    """
    items: Any = content
    if isinstance(content, dict):
        items = content.get("cards")
        if not isinstance(items, list):
            items = next((v for v in content.values() if isinstance(v, list)), [])
    if not isinstance(items, list):
        return []

    cards = []
    for item in items:
        if len(cards) >= max_cards:
            break
        if not isinstance(item, dict):
            continue
        front, back = item.get("front"), item.get("back")
        if not isinstance(front, str) or not isinstance(back, str):
            continue
        if front.strip() and back.strip():
            cards.append(Flashcard(front=front.strip(), back=back.strip()))
    return cards


class FlashcardGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        max_cards: int = 20,
        max_text_chars: int = 12_000,
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_cards = max_cards
        self.max_text_chars = max_text_chars
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_config(
        cls,
        ocr_config: OCRConfig,
        model: str,
        max_cards: int,
        max_text_chars: int,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "FlashcardGenerator":
        """Share credentials and endpoint with the vision service."""
        return cls(
            api_key=ocr_config.api_key,
            model=model,
            base_url=ocr_config.base_url,
            max_cards=max_cards,
            max_text_chars=max_text_chars,
            timeout_seconds=ocr_config.timeout_seconds,
            client=client,
        )

    def build_request(self, notes: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "user", "content": PROMPT_TEMPLATE.format(notes=notes)}
            ],
            "temperature": 0.2,
        }

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self._client is not None:
            return await self._client.post(url, json=body, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(url, json=body, headers=headers)

    async def generate(self, text: str) -> list[Flashcard]:
        """Turn study notes into flashcards.

        Raises:
            InputError: If the notes are empty
            ConfigurationError: If no API key is configured
            ServiceUnavailableError: If the model call fails
            UpstreamResponseError: If the model answer is not valid JSON
        """
        notes = normalize_text(text or "", max_chars=self.max_text_chars)
        if not notes:
            raise InputError("No text")
        if not self.api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY")

        with Timer("flashcard_generation") as timer:
            try:
                response = await self._post(self.build_request(notes))
            except httpx.HTTPError as exc:
                raise ServiceUnavailableError(
                    f"Flashcard service request failed: {exc}"
                ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            message = "OpenAI error"
            if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
                message = payload["error"].get("message") or message
            logger.warning(
                "Flashcard service returned an error",
                extra_data={"status_code": response.status_code, "error": message},
            )
            raise ServiceUnavailableError(message, status_code=response.status_code)

        try:
            content = payload["choices"][0]["message"]["content"] or "{}"
            data = json.loads(content)
        except (TypeError, KeyError, IndexError, ValueError) as exc:
            raise UpstreamResponseError("Bad JSON from model") from exc

        cards = parse_cards(data, self.max_cards)
        logger.info(
            "Generated flashcards",
            extra_data={
                "notes_characters": len(notes),
                "card_count": len(cards),
                "generation_time_ms": timer.get_elapsed_ms(),
            },
        )
        return cards
