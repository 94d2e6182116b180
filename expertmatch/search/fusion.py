"""
Weighted reciprocal-rank fusion of named ranked lists.

Each source contributes ``weight(source) / (k + rank + 1)`` for every
candidate it ranks (rank is 0-based). Contributions are summed per candidate
and candidates are sorted by fused score descending. Raw backend scores are
never compared across sources: only ranks are, so a cosine similarity and a
Lucene score can be fused without normalization.

With the default ``k = 0`` the contribution is exactly ``weight / (rank + 1)``;
``k = 60`` gives the classic RRF damping.

Determinism:
- Only the first occurrence of an id within one source list counts
- Equal fused scores keep first-seen order (source iteration order, then
  rank within the source)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from expertmatch.domain.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_SOURCE_WEIGHT = 1.0
DEFAULT_WEIGHTS: Mapping[str, float] = {
    "vector": 1.0,
    "graph": 0.8,
    "keyword": 0.6,
}
_DEFAULT_K = 0

# Marks an omitted weights argument; an explicit None is rejected
_UNSET: Any = object()


class ResultFusionService:
    """Fuses per-source rankings into one ranking.

    Usage:
        fusion = ResultFusionService()
        ranked = fusion.fuse(
            {"vector": ["a", "b"], "keyword": ["b", "c"]},
            {"vector": 1.0, "keyword": 0.6},
        )
    """

    def __init__(self, k: int = _DEFAULT_K) -> None:
        """Initialize with the rank offset.

        Args:
            k: Non-negative rank offset added to every denominator

        Raises:
            InvalidInputError: If k is negative
        """
        if k < 0:
            raise InvalidInputError(f"Fusion rank offset k must be >= 0, got {k}")
        self._k = k

    @property
    def k(self) -> int:
        return self._k

    def fuse(
        self,
        named_results: Mapping[str, Sequence[str]] | None,
        weights: Mapping[str, float] | None = _UNSET,
    ) -> list[str]:
        """Fuse named rankings into one ordered id list.

        Args:
            named_results: Source name -> ranked ids (best first)
            weights: Source name -> weight; sources without an entry get 1.0.
                Omitted means DEFAULT_WEIGHTS

        Returns:
            Unique ids ordered by fused score descending

        Raises:
            InvalidInputError: If named_results is None or empty, weights is
                None, or any weight is negative
        """
        return [expert_id for expert_id, _ in self.fuse_with_scores(named_results, weights)]

    def fuse_with_scores(
        self,
        named_results: Mapping[str, Sequence[str]] | None,
        weights: Mapping[str, float] | None = _UNSET,
    ) -> list[tuple[str, float]]:
        """Same as fuse(), returning ``(id, fused_score)`` pairs."""
        if not named_results:
            raise InvalidInputError("named_results must contain at least one source")
        if weights is _UNSET:
            weights = DEFAULT_WEIGHTS
        if weights is None:
            raise InvalidInputError("weights must not be None")
        negative = {name: w for name, w in weights.items() if w < 0}
        if negative:
            raise InvalidInputError(f"Source weights must be >= 0, got {negative}")

        scores: dict[str, float] = {}
        for source, ranked_ids in named_results.items():
            weight = weights.get(source, DEFAULT_SOURCE_WEIGHT)
            seen: set[str] = set()
            for rank, expert_id in enumerate(ranked_ids or ()):
                if expert_id in seen:
                    continue
                seen.add(expert_id)
                scores[expert_id] = scores.get(expert_id, 0.0) + weight / (self._k + rank + 1)

        # sorted() is stable, so ties keep dict insertion (first-seen) order
        fused = sorted(scores.items(), key=lambda item: -item[1])
        logger.debug(
            "Fused %d sources into %d candidates (k=%d)",
            len(named_results),
            len(fused),
            self._k,
        )
        return fused
