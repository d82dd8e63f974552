"""Data models for notes parser."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ContentCategory(str, Enum):
    """Closed set of content categories a file is classified into."""

    PDF = "pdf"
    PRESENTATION = "presentation"
    PLAIN_TEXT = "plain_text"
    IMAGE = "image"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FileRecord:
    """Uploaded file held in memory for the duration of one request."""

    filename: str
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Success:
    file: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "ok": True, "text": self.text}


@dataclass(frozen=True)
class Failure:
    file: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "ok": False, "error": self.reason}


ExtractionOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class Flashcard:
    front: str
    back: str

    def to_dict(self) -> dict[str, str]:
        return {"front": self.front, "back": self.back}
