"""Text normalization helpers shared by the parser and name matching."""

import unicodedata


def strip_accents(text: str) -> str:
    """Drop combining marks after NFD decomposition ("João" -> "Joao")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(text: str) -> str:
    """Lowercase, accent-free, trimmed form used for comparisons."""
    return strip_accents(text).lower().strip()


def fold_with_offsets(text: str) -> tuple[str, list[int]]:
    """
    Fold text while remembering where each folded character came from.

    Returns:
        (folded, offsets) where offsets[i] is the index in ``text`` of the
        character that produced folded[i].
    """
    chars: list[str] = []
    offsets: list[int] = []

    for index, char in enumerate(text):
        for piece in unicodedata.normalize("NFD", char):
            if unicodedata.combining(piece):
                continue
            for lowered in piece.lower():
                chars.append(lowered)
                offsets.append(index)

    return "".join(chars), offsets


def title_case(name: str) -> str:
    """Capitalize each whitespace-delimited word, keeping word order."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())
