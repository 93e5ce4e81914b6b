"""Text normalization and chunking strategies.

Every function here is pure: the same (text, strategy, token_size) always
yields the same chunk list, which is what lets a stored version be
re-chunked and compared later.
"""

from __future__ import annotations

import re
from enum import StrEnum

DEFAULT_TOKEN_SIZE = 120
MIN_TOKEN_SIZE = 20

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")
_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+")
# Short ALL-CAPS label lines such as "BACKGROUND:" or "TOP-LEVEL NOTES:"
_LABEL_HEADING = re.compile(r"^[A-Z][A-Z0-9\s-]{2,}:$")


class ChunkStrategy(StrEnum):
    PARAGRAPH = "paragraph"
    TOKEN = "token"
    SECTION = "section"
    WHOLE = "whole"


def normalize_text(text: str | None) -> str:
    """Normalize line endings to ``\\n`` and trim surrounding whitespace."""
    if not text:
        return ""
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def chunk_by_paragraph(text: str) -> list[str]:
    parts = _PARAGRAPH_BREAK.split(normalize_text(text))
    return [part.strip() for part in parts if part.strip()]


def chunk_by_token_count(text: str, token_size: int | None = DEFAULT_TOKEN_SIZE) -> list[str]:
    """Group whitespace-delimited words into fixed-size windows."""
    words = normalize_text(text).split()
    if not words:
        return []
    size = max(MIN_TOKEN_SIZE, round(token_size)) if token_size else DEFAULT_TOKEN_SIZE
    return [" ".join(words[i:i + size]) for i in range(0, len(words), size)]


def is_heading_line(line: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    if _MARKDOWN_HEADING.match(stripped):
        return True
    return bool(_LABEL_HEADING.match(stripped))


def chunk_by_section(text: str) -> list[str]:
    """Start a new chunk at every heading line.

    Content before the first heading stays in the first chunk. Text with no
    headings at all falls back to paragraph chunking.
    """
    normalized = normalize_text(text)
    if not normalized:
        return []

    chunks: list[str] = []
    current: list[str] = []
    heading_seen = False

    for line in normalized.split("\n"):
        if is_heading_line(line):
            heading_seen = True
            block = "\n".join(current).strip()
            if block:
                chunks.append(block)
            current = [line.strip()]
        else:
            current.append(line)

    tail = "\n".join(current).strip()
    if tail:
        chunks.append(tail)

    return chunks if heading_seen else chunk_by_paragraph(normalized)


def chunk_whole(text: str) -> list[str]:
    normalized = normalize_text(text)
    return [normalized] if normalized else []


def build_chunks(
    text: str,
    strategy: str = ChunkStrategy.PARAGRAPH,
    token_size: int | None = DEFAULT_TOKEN_SIZE,
) -> list[str]:
    """Split text into ordered, non-empty chunks using the named strategy.

    Unknown strategy names are treated as ``paragraph``.
    """
    if strategy == ChunkStrategy.TOKEN:
        return chunk_by_token_count(text, token_size)
    if strategy == ChunkStrategy.SECTION:
        return chunk_by_section(text)
    if strategy == ChunkStrategy.WHOLE:
        return chunk_whole(text)
    return chunk_by_paragraph(text)
