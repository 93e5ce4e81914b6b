"""Token-budgeted context assembly.

Walks ranked candidates and emits one section per document until the
usable budget runs out. Each document gets a ceiling so a single large
file cannot starve the rest, and degrades along full → truncated →
summary before being dropped. Sections are never split across the
budget boundary.

Token counts are a word-count proxy (``round(words * 1.3)``); the same
estimate is used for budgeting and for the usage report.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from docshelf.services.preprocess import split_sentences
from docshelf.services.ranking import Candidate

TOKENS_PER_WORD = 1.3
CHARS_PER_TOKEN = 4

MIN_RESERVE_TOKENS = 300
MIN_USABLE_TOKENS = 200
HEADER_MARGIN_TOKENS = 24
MIN_DOC_CEILING = 40
MAX_DOC_SHARE = 0.45
MAX_REMAINING_SHARE = 0.9
SUMMARY_SENTENCES = 2

SECTION_DELIMITER = "\n\n---\n\n"
TRUNCATION_MARKER = "..."

_WORD = re.compile(r"\S+")


class Method(StrEnum):
    FULL = "full"
    TRUNCATED = "truncated"
    SUMMARY = "summary"


@dataclass
class DocumentUsage:
    id: uuid.UUID
    name: str
    method: Method
    used_tokens: int
    pinned: bool
    score: int


@dataclass
class ContextUsage:
    budget_tokens: int
    reserve_tokens: int
    used_tokens: int = 0
    remaining_tokens: int = 0
    docs: list[DocumentUsage] = field(default_factory=list)


@dataclass
class Allocation:
    text: str
    usage: ContextUsage


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return round(len(text.split()) * TOKENS_PER_WORD)


_DELIMITER_TOKENS = estimate_tokens(SECTION_DELIMITER)


def usable_budget(token_budget: int, reserve_tokens: int) -> int:
    return max(MIN_USABLE_TOKENS, token_budget - reserve_tokens)


def _clip_words(text: str, ceiling: int) -> str:
    """Keep as many leading words as ``ceiling`` tokens allow, spacing intact."""
    keep = int(ceiling / TOKENS_PER_WORD)
    if keep <= 0:
        return ""
    for index, match in enumerate(_WORD.finditer(text), start=1):
        if index == keep:
            return text[: match.end()]
    return text


def truncate_to_tokens(text: str, ceiling: int) -> str:
    """Cut to roughly ``ceiling * 4`` characters, backing off to a word boundary.

    Text made of very short words can still be over the ceiling after the
    character cut; it is then shortened word by word until it fits. The
    marker is glued to the last word so it adds no tokens.
    """
    limit = ceiling * CHARS_PER_TOKEN
    cut = text
    if len(cut) > limit:
        cut = cut[:limit]
        boundary = cut.rfind(" ")
        if boundary > limit // 2:
            cut = cut[:boundary]
    if estimate_tokens(cut) > ceiling:
        cut = _clip_words(cut, ceiling)
    if cut == text:
        return text
    cut = cut.rstrip()
    return cut + TRUNCATION_MARKER if cut else ""


def summarize(text: str, ceiling: int | None = None) -> str:
    summary = " ".join(split_sentences(text.strip())[:SUMMARY_SENTENCES])
    if ceiling is not None and estimate_tokens(summary) > ceiling:
        # No usable sentence boundary; the extract is capped like a truncation
        summary = _clip_words(summary, ceiling).rstrip()
    return summary


def degrade(text: str, ceiling: int) -> tuple[str, Method]:
    """First rung of the ladder whose estimate fits under ``ceiling``.

    Every rung stays within ``ceiling``. The summary rung is only reached
    when the ceiling is too small to keep a single truncated word.
    """
    if estimate_tokens(text) <= ceiling:
        return text, Method.FULL
    truncated = truncate_to_tokens(text, ceiling)
    if truncated and estimate_tokens(truncated) <= ceiling:
        return truncated, Method.TRUNCATED
    return summarize(text, ceiling), Method.SUMMARY


def allocate(
    ranked: list[Candidate],
    token_budget: int,
    reserve_tokens: int = MIN_RESERVE_TOKENS,
) -> Allocation:
    """Pack ranked candidates into a single context string within budget."""
    reserve = max(MIN_RESERVE_TOKENS, reserve_tokens)
    usable = usable_budget(token_budget, reserve)
    remaining = usable

    sections: list[str] = []
    usage = ContextUsage(budget_tokens=token_budget, reserve_tokens=reserve)

    for candidate in ranked:
        header = f"Document: {candidate.document.name}"
        # The delimiter is charged to every section after the first
        overhead = estimate_tokens(header) + (_DELIMITER_TOKENS if sections else 0)
        if remaining < overhead + HEADER_MARGIN_TOKENS:
            break

        body_text = (candidate.source_text or "").strip()
        if not body_text:
            continue

        ceiling = max(
            MIN_DOC_CEILING,
            min(int(usable * MAX_DOC_SHARE), int((remaining - overhead) * MAX_REMAINING_SHARE)),
        )
        body, method = degrade(body_text, ceiling)
        if not body:
            continue

        section = f"{header}\n{body}"
        cost = estimate_tokens(section) + (_DELIMITER_TOKENS if sections else 0)
        if cost > remaining:
            continue

        sections.append(section)
        remaining -= cost
        usage.docs.append(DocumentUsage(
            id=candidate.document.id,
            name=candidate.document.name,
            method=method,
            used_tokens=cost,
            pinned=candidate.pinned,
            score=candidate.score,
        ))

    usage.used_tokens = usable - remaining
    usage.remaining_tokens = remaining
    return Allocation(text=SECTION_DELIMITER.join(sections), usage=usage)
