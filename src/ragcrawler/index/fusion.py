"""Reciprocal Rank Fusion of independently ranked candidate lists.

RRF combines rankings rather than raw scores, so dense cosine similarities
and sparse dot products never have to be put on a common scale:

    score(d) = sum over lists L containing d of 1 / (k + rank_L(d))

where ``rank_L`` is the 1-based position of ``d`` in ``L``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, Hashable, List, Sequence, TypeVar

DEFAULT_RANK_CONSTANT = 60

T = TypeVar("T")


@dataclass(slots=True)
class FusedItem(Generic[T]):
    key: Hashable
    item: T
    score: float
    ranks: Dict[str, int] = field(default_factory=dict)


def reciprocal_rank_fusion(
    ranked_lists: Dict[str, Sequence[T]],
    *,
    key=lambda item: item,
    k: int = DEFAULT_RANK_CONSTANT,
    limit: int | None = None,
) -> List[FusedItem[T]]:
    """Merge named ranked lists into one list ordered by descending RRF score.

    Args:
        ranked_lists: Mapping of list name (e.g. ``"dense"``) to its items, best first.
        key: Identity function used to recognise the same item across lists.
        k: Rank constant; larger values flatten the contribution of top ranks.
        limit: Optional maximum number of fused items to return.

    Ties keep first-seen order, so an item ranked earlier in an earlier list wins.
    """
    if k < 0:
        raise ValueError("Rank constant must be non-negative")

    fused: Dict[Hashable, FusedItem[T]] = {}
    for name, items in ranked_lists.items():
        for rank, item in enumerate(items, start=1):
            item_key = key(item)
            entry = fused.get(item_key)
            if entry is None:
                entry = fused[item_key] = FusedItem(key=item_key, item=item, score=0.0)
            if name in entry.ranks:
                continue
            entry.ranks[name] = rank
            entry.score += 1.0 / (k + rank)

    ordered = sorted(fused.values(), key=lambda entry: entry.score, reverse=True)
    if limit is not None:
        ordered = ordered[: max(limit, 0)]
    return ordered
