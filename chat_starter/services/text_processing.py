"""
Text processing for ingestion: cleaning and splitting into overlapping windows.

Cleaning reduces noise and encoding inconsistencies so embeddings focus on
content. Windows are at most chunk_size characters; consecutive windows share up
to `overlap` characters of trailing text so context carries across boundaries.
"""

import re
import unicodedata


def clean_text(text: str) -> str:
    """
    Normalize and clean raw document text: NFKC, strip each line, drop
    consecutive duplicate lines, collapse runs of blank lines to one.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    lines = [line.strip() for line in text.splitlines()]
    result: list[str] = []
    for line in lines:
        if result and result[-1] == line:
            continue
        result.append(line)
    collapsed: list[str] = []
    for line in result:
        if line == "" and (not collapsed or collapsed[-1] == ""):
            continue
        collapsed.append(line)
    return "\n".join(collapsed).strip()


def _units(text: str, chunk_size: int) -> list[str]:
    """Sentences, with any sentence longer than a window broken into words (and words into slices)."""
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]
    units: list[str] = []
    for sent in sentences:
        if len(sent) <= chunk_size:
            units.append(sent)
            continue
        for word in sent.split():
            if len(word) <= chunk_size:
                units.append(word)
            else:
                units.extend(word[i : i + chunk_size] for i in range(0, len(word), chunk_size))
    return units


def _tail(parts: list[str], overlap: int) -> list[str]:
    """Trailing parts of a finished window whose joined length fits in `overlap`."""
    kept: list[str] = []
    size = 0
    for part in reversed(parts):
        add = len(part) + (1 if kept else 0)
        if size + add > overlap:
            break
        kept.append(part)
        size += add
    kept.reverse()
    return kept


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> list[str]:
    """
    Split text into overlapping windows of at most chunk_size characters.

    Sentence boundaries are preferred; words are only split when a single word
    is longer than the window.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")
    if not text or not text.strip():
        return []
    text = text.strip()
    if len(text) <= chunk_size:
        return [text]

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for unit in _units(text, chunk_size):
        add_len = len(unit) + (1 if current else 0)
        if current and current_len + add_len > chunk_size:
            chunks.append(" ".join(current))
            current = _tail(current, overlap)
            current_len = len(" ".join(current))
            # The carried-over tail must still leave room for the next unit
            while current and current_len + len(unit) + 1 > chunk_size:
                current.pop(0)
                current_len = len(" ".join(current))
            add_len = len(unit) + (1 if current else 0)
        current.append(unit)
        current_len += add_len
    if current:
        chunks.append(" ".join(current))
    return chunks
