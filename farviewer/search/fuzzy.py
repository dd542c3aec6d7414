from __future__ import annotations

import heapq
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import TypeVar

from ..errors import Cancelled

T = TypeVar("T")

WORD_BOUNDARY_CHARS = "_- ."


def is_subsequence(query: str, candidate: str) -> bool:
    """Return whether ``query`` appears in order (case-insensitively) in ``candidate``."""
    haystack = iter(candidate.casefold())
    return all(needle in haystack for needle in query.casefold())


def _score_alignment(query_folded: str, candidate_folded: str, start: int, basename_start: int) -> int | None:
    """Score the leftmost alignment of ``query_folded`` beginning at ``start``."""
    score = 0
    prev_idx = start - 1
    run = 0
    for position, needle in enumerate(query_folded):
        idx = candidate_folded.find(needle, prev_idx + 1)
        if idx < 0:
            return None
        if position > 0 and idx == prev_idx + 1:
            run += 1
            score += 20 + min(16, run * 4)
        else:
            gap = idx - prev_idx - 1 if position > 0 else idx
            run = 0
            score -= min(40, gap * 2)
        if idx == basename_start:
            score += 60
        elif idx == 0 or candidate_folded[idx - 1] == "/":
            score += 35
        elif candidate_folded[idx - 1] in WORD_BOUNDARY_CHARS:
            score += 20
        prev_idx = idx
    return score


def fuzzy_score(query: str, candidate: str) -> int | None:
    """Score ``candidate`` for ``query``; ``None`` when it is not a subsequence.

    Rewards contiguous runs, matches right after ``/``, a match on the first
    character of the file name, and shorter paths; penalizes gaps. Two
    alignments are tried (leftmost over the whole path, and leftmost inside the
    file name) and the better one wins, so the result depends only on the inputs.
    """
    if not query:
        return 0
    query_folded = query.casefold()
    candidate_folded = candidate.casefold()
    basename_start = candidate_folded.rfind("/") + 1

    best = _score_alignment(query_folded, candidate_folded, 0, basename_start)
    if best is None:
        return None
    if basename_start > 0:
        anchored = _score_alignment(query_folded, candidate_folded, basename_start, basename_start)
        if anchored is not None and anchored > best:
            best = anchored
    return best - len(candidate_folded) // 5


def rank_key(score: int, label: str) -> tuple[int, int, str]:
    """Total order: score descending, then shorter path, then lexicographic."""
    return (-score, len(label), label)


def rank_candidates(
    query: str,
    candidates: Iterable[T],
    label_for: Callable[[T], str],
    limit: int = 200,
    should_cancel: Callable[[], bool] | None = None,
) -> list[tuple[T, int]]:
    """Return the top ``limit`` matching candidates as ``(candidate, score)``.

    Uses a bounded partial sort. ``should_cancel`` is polled between candidates
    and raises ``Cancelled`` as soon as it reports true.
    """
    if not query:
        return []
    max_results = max(1, limit)

    def iter_scored() -> Iterator[tuple[tuple[int, int, str], T, int]]:
        for candidate in candidates:
            if should_cancel is not None and should_cancel():
                raise Cancelled(query)
            label = label_for(candidate)
            score = fuzzy_score(query, label)
            if score is None:
                continue
            yield rank_key(score, label), candidate, score

    best = heapq.nsmallest(max_results, iter_scored(), key=lambda item: item[0])
    return [(candidate, score) for _key, candidate, score in best]


def rank_paths(query: str, paths: Sequence[str], limit: int = 200) -> list[tuple[str, int]]:
    """Rank plain path strings; convenience wrapper for callers without entries."""
    return rank_candidates(query, paths, lambda path: path, limit=limit)


__all__ = [
    "fuzzy_score",
    "is_subsequence",
    "rank_candidates",
    "rank_key",
    "rank_paths",
]
