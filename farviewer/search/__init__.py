"""Search package exports: fuzzy scoring and top-K ranking."""

from __future__ import annotations

from .fuzzy import fuzzy_score, is_subsequence, rank_candidates, rank_key, rank_paths

__all__ = [
    "fuzzy_score",
    "is_subsequence",
    "rank_candidates",
    "rank_key",
    "rank_paths",
]
