"""Preprocessing presets and the custom-instruction heuristic.

Runs before chunking; the output becomes a version's text snapshot.
"""

from __future__ import annotations

import re
from enum import StrEnum

from docshelf.services.chunking import normalize_text

SUMMARY_SENTENCES = 8

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_LINE_OR_PARAGRAPH = re.compile(r"\n\s*\n+|\n")
_BULLET_MARKER = re.compile(r"^[-*]\s*")
_QA_LABEL = re.compile(r"^(Q|A)\s*:\s*", re.IGNORECASE)


class Preset(StrEnum):
    NONE = "none"
    SUMMARIZE = "summarize"
    BULLETS = "bullets"
    QA_CLEAN = "qa-clean"


def split_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation followed by whitespace."""
    return [s for s in _SENTENCE_END.split(text) if s]


def apply_preset(text: str, preset: str | None) -> str:
    source = normalize_text(text)
    if not source:
        return ""

    if preset == Preset.SUMMARIZE:
        return " ".join(split_sentences(source)[:SUMMARY_SENTENCES])

    if preset == Preset.BULLETS:
        lines = [line.strip() for line in _LINE_OR_PARAGRAPH.split(source)]
        return "\n".join(f"- {_BULLET_MARKER.sub('', line)}" for line in lines if line)

    if preset == Preset.QA_CLEAN:
        lines = (_QA_LABEL.sub("", line).strip() for line in source.split("\n"))
        return "\n".join(line for line in lines if line)

    return source


def apply_custom(text: str, instructions: str | None) -> str:
    """Apply the first recognised directive; anything else leaves text alone.

    Only ``lowercase``, ``uppercase`` and ``trim lines`` are understood.
    """
    directive = (instructions or "").strip().lower()
    if not directive:
        return text
    if "lowercase" in directive:
        return text.lower()
    if "uppercase" in directive:
        return text.upper()
    if "trim lines" in directive:
        return "\n".join(line.strip() for line in text.split("\n"))
    return text


def preprocess_text(text: str, preset: str | None = Preset.NONE, custom: str | None = "") -> str:
    return apply_custom(apply_preset(text, preset), custom)
