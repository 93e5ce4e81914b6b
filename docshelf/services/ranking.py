"""Relevance ranking of a character's assigned documents.

Scoring is a term-presence count: +1 for every query term found in the
document name, folder, tags, or the first few thousand characters of the
source text, plus a flat boost for pinned assignments. Ties break on
recency (newer first) and then name.

Larger candidate sets can be scored in a separate worker process. The
caller races that worker against a deadline; whatever happens to the
worker, the synchronous path produces the same ordering, so the offload
only ever changes how long ranking takes.
"""

from __future__ import annotations

import asyncio
import logging
import multiprocessing
import re
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from docshelf.models.assignment import Assignment
from docshelf.models.document import Document

logger = logging.getLogger(__name__)

PINNED_BOOST = 100
SNIPPET_CHARS = 2400
MAX_QUERY_TERMS = 24
MIN_TERM_LENGTH = 3

OFFLOAD_TIMEOUT_MS = 1200
OFFLOAD_MIN_CANDIDATES = 6

_TERM_SPLIT = re.compile(r"[^a-z0-9]+")


class OffloadUnavailable(RuntimeError):
    """The platform cannot start a worker process."""


class OffloadTimeout(TimeoutError):
    """The worker did not answer before the deadline."""


class RankingPath(StrEnum):
    OFFLOAD = "offload"
    SYNC = "sync"


@dataclass
class Candidate:
    """One assigned document competing for space in the context."""
    document: Document
    assignment: Assignment
    source_text: str
    recency: float
    score: int = 0

    @property
    def pinned(self) -> bool:
        return self.assignment.pinned_version_id is not None


@dataclass
class RankingResult:
    candidates: list[Candidate]
    path: RankingPath


def query_terms(query: str | None) -> list[str]:
    """Lowercase terms of at least three characters, first occurrence wins, max 24."""
    terms: list[str] = []
    for term in _TERM_SPLIT.split((query or "").lower()):
        if len(term) >= MIN_TERM_LENGTH and term not in terms:
            terms.append(term)
            if len(terms) == MAX_QUERY_TERMS:
                break
    return terms


def candidate_snapshot(candidate: Candidate) -> dict[str, Any]:
    """Plain, picklable view of a candidate; bodies are cut to the scored prefix."""
    return {
        "name": candidate.document.name or "",
        "folder": candidate.document.folder or "",
        "tags": candidate.document.tags,
        "snippet": (candidate.source_text or "")[:SNIPPET_CHARS],
        "recency": float(candidate.recency or 0),
        "pinned": candidate.pinned,
    }


def score_snapshot(snapshot: dict[str, Any], terms: list[str]) -> int:
    score = PINNED_BOOST if snapshot.get("pinned") else 0
    if not terms:
        return score
    haystacks = (
        str(snapshot.get("name") or "").lower(),
        str(snapshot.get("folder") or "").lower(),
        " ".join(str(tag).lower() for tag in snapshot.get("tags") or []),
        str(snapshot.get("snippet") or "").lower(),
    )
    for term in terms:
        if any(term in haystack for haystack in haystacks):
            score += 1
    return score


def rank_snapshots(snapshots: list[dict[str, Any]], terms: list[str]) -> list[tuple[int, int]]:
    """Return ``(index, score)`` pairs ordered by score, recency, then name.

    Module level so a worker process can unpickle and run it.
    """
    scored = [
        (index, score_snapshot(snapshot, terms), float(snapshot.get("recency") or 0), str(snapshot.get("name") or ""))
        for index, snapshot in enumerate(snapshots)
    ]
    scored.sort(key=lambda item: (-item[1], -item[2], item[3]))
    return [(index, score) for index, score, _, _ in scored]


class Offload(Protocol):
    async def rank(self, snapshots: list[dict[str, Any]], terms: list[str]) -> list[tuple[int, int]]:
        ...


class ProcessOffload:
    """Scores snapshots in a single-worker process pool created per call.

    The pool is shut down without waiting when the call finishes, fails, or
    is cancelled by the caller's deadline. Queued work is cancelled and the
    worker exits as soon as its current batch is scored.
    """

    def __init__(self, start_method: str | None = None) -> None:
        self.start_method = start_method

    async def rank(self, snapshots: list[dict[str, Any]], terms: list[str]) -> list[tuple[int, int]]:
        try:
            executor = ProcessPoolExecutor(
                max_workers=1,
                mp_context=multiprocessing.get_context(self.start_method),
            )
        except (OSError, ImportError, ValueError, NotImplementedError) as exc:
            raise OffloadUnavailable(str(exc) or type(exc).__name__) from exc

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(executor, rank_snapshots, snapshots, terms)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


class RelevanceRanker:
    """Scores and orders candidates, offloading large sets when possible."""

    def __init__(
        self,
        offload: Offload | None = None,
        timeout_ms: int = OFFLOAD_TIMEOUT_MS,
        min_candidates: int = OFFLOAD_MIN_CANDIDATES,
    ) -> None:
        self.offload = offload
        self.timeout_ms = timeout_ms
        self.min_candidates = min_candidates

    async def rank(self, candidates: list[Candidate], terms: list[str]) -> RankingResult:
        snapshots = [candidate_snapshot(c) for c in candidates]
        ranked: list[tuple[int, int]] | None = None
        path = RankingPath.SYNC

        offload = self.offload
        if offload is not None and len(candidates) >= self.min_candidates:
            try:
                ranked = await self._rank_offloaded(offload, snapshots, terms)
                path = RankingPath.OFFLOAD
            except OffloadTimeout:
                logger.warning("Ranking offload timed out after %d ms; ranking in-process", self.timeout_ms)
            except OffloadUnavailable as exc:
                logger.info("Ranking offload unavailable (%s); ranking in-process", exc)
            except Exception:
                logger.warning("Ranking offload failed; ranking in-process", exc_info=True)

        if ranked is None:
            ranked = rank_snapshots(snapshots, terms)
        return RankingResult(candidates=_apply(candidates, ranked), path=path)

    async def _rank_offloaded(
        self,
        offload: Offload,
        snapshots: list[dict[str, Any]],
        terms: list[str],
    ) -> list[tuple[int, int]]:
        try:
            ranked = await asyncio.wait_for(
                offload.rank(snapshots, terms),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as exc:
            raise OffloadTimeout(f"no answer within {self.timeout_ms} ms") from exc

        pairs = [(int(index), int(score)) for index, score in ranked]
        if sorted(index for index, _ in pairs) != list(range(len(snapshots))):
            raise ValueError("offloaded ranking does not cover every candidate exactly once")
        return pairs


def _apply(candidates: list[Candidate], ranked: list[tuple[int, int]]) -> list[Candidate]:
    ordered: list[Candidate] = []
    for index, score in ranked:
        candidates[index].score = score
        ordered.append(candidates[index])
    return ordered
