"""Text helpers for free-text engineer comments and coded keys.

Comments arrive in English, French and other languages, so matching works on
an accent-folded, lowercased form with word boundaries.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_NON_WORD = re.compile(r"[^a-z0-9]+")

# Common words that carry no part-type meaning
STOP_WORDS = frozenset(
    {
        "and", "for", "the", "new", "with", "kit", "set", "type", "model",
        "part", "parts", "pour", "avec", "les", "des", "une", "other", "misc",
    }
)


def fold_text(text: str | None) -> str:
    """Normalize text for matching.

    Args:
        text: Input string

    Returns:
        Lowercased, accent-stripped string with punctuation collapsed to single spaces
    """
    if not text:
        return ""

    # Unicode normalization (NFKD) then drop combining marks: "remplacé" -> "remplace"
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))

    return _NON_WORD.sub(" ", stripped.lower()).strip()


def contains_term(folded_text: str, term: str) -> bool:
    """Check whether an (unfolded) term appears in already-folded text on word boundaries."""
    folded_term = fold_text(term)
    if not folded_term or not folded_text:
        return False
    return f" {folded_term} " in f" {folded_text} "


def find_terms(folded_text: str, terms: Iterable[str]) -> list[str]:
    """Return the terms (in input order) that appear in folded text."""
    return [term for term in terms if contains_term(folded_text, term)]


def significant_tokens(*texts: str | None) -> list[str]:
    """Extract distinctive tokens (length >= 3, not stop words) from texts, de-duplicated."""
    tokens: list[str] = []
    for text in texts:
        for token in fold_text(text).split():
            if len(token) < 3 or token in STOP_WORDS or token.isdigit():
                continue
            if token not in tokens:
                tokens.append(token)
    return tokens


_PART_REFERENCE = re.compile(r"^(?=[a-z0-9]*[a-z])(?=[a-z0-9]*[0-9])[a-z0-9]{5,}$")


def is_part_reference(token: str) -> bool:
    """Whether a folded token looks like a manufacturer reference ('tfos02550')."""
    return bool(_PART_REFERENCE.match(token))


_CAMEL_SPLIT = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def translate_state_key(state_key: str | None) -> str:
    """Translate a coded component key to plain language.

    Example:
        >>> translate_state_key("landings.door.locks")
        'Landings Door Locks'
        >>> translate_state_key("car.guideShoes")
        'Car Guide Shoes'
    """
    if not state_key:
        return ""

    words = []
    for part in re.split(r"[._]", state_key.strip()):
        if not part:
            continue
        pieces = _CAMEL_SPLIT.split(part)
        words.append(" ".join(piece[:1].upper() + piece[1:].lower() for piece in pieces))

    return " ".join(words)
