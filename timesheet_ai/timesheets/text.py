"""Text normalization shared by the intent parser and the plan builder."""

import re
import unicodedata

_CURLY_QUOTES = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "’": "'",
    }
)

# en dash, em dash, minus sign, non-breaking hyphen
_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-", "‑": "-"})


def normalize_quotes(value: str) -> str:
    return value.translate(_CURLY_QUOTES)


def normalize_dashes(value: str) -> str:
    return value.translate(_DASHES)


def ascii_fold(value: str) -> str:
    """Transliterate to ASCII, dropping what has no ASCII form ("últimos" -> "ultimos").

    Curly quotes and dashes are mapped first so they survive as ASCII punctuation.
    """
    value = normalize_dashes(normalize_quotes(value))
    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def strip_outer_quotes(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        return value

    first, last = value[0], value[-1]
    if (first == '"' and last == '"') or (first == "'" and last == "'"):
        return value[1:-1].strip()

    return value


def strip_quotes(value: str) -> str:
    """Normalize curly quotes, then strip one pair of surrounding quotes."""
    return strip_outer_quotes(normalize_quotes(value))


def normalize_label(value: str) -> str:
    """Lowercase + ASCII-fold a `label:` so "Descrição" matches "descricao"."""
    value = value.strip()
    if not value:
        return ""
    return ascii_fold(value.lower()).strip()


def normalize_prompt(prompt: str) -> str:
    """Lowercase, ASCII-fold and collapse whitespace for phrase matching."""
    return re.sub(r"\s+", " ", ascii_fold(prompt.lower()))


def normalize_free_text_prompt(prompt: str) -> str:
    """Flatten a free-text prompt before it is sent through the pipeline.

    Keeps case; folds curly quotes and accents and collapses whitespace.
    """
    normalized = ascii_fold(normalize_quotes(prompt))
    return re.sub(r"\s+", " ", normalized).strip()


def normalize_project_label(value: str) -> str:
    return strip_outer_quotes(normalize_quotes(value).strip())
