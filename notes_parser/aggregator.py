"""Combine per-file outcomes into a response payload."""

import re
from typing import Any, Sequence

from notes_parser.models import ExtractionOutcome, Success

DEFAULT_MAX_CHARS = 12_000

EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def normalize_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Strip carriage returns, collapse blank-line runs and cap the length.

    Truncation is a hard cut at ``max_chars``; no attempt is made to end on a
    word or sentence.
    """
    text = text.replace("\r", "")
    text = EXCESS_NEWLINES_PATTERN.sub("\n\n", text).strip()
    return text[: max(0, max_chars)]


def results_payload(outcomes: Sequence[ExtractionOutcome]) -> list[dict[str, Any]]:
    """Multi-file mode: one entry per input file, in input order."""
    return [outcome.to_dict() for outcome in outcomes]


def concatenate_text(
    outcomes: Sequence[ExtractionOutcome], max_chars: int = DEFAULT_MAX_CHARS
) -> str:
    """Single-blob mode: successful texts joined by blank lines, failures omitted."""
    texts = [o.text for o in outcomes if isinstance(o, Success) and o.text.strip()]
    return normalize_text("\n\n".join(texts), max_chars=max_chars)
