# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""Reciprocal Rank Fusion of two ranked ID lists."""
from typing import NamedTuple, Sequence


class RankedItem(NamedTuple):
    id: str
    score: float


def rrf_fuse(
    a: Sequence[RankedItem],
    b: Sequence[RankedItem],
    k: int = 60,
    limit: int = 20,
    missing_rank: int = 999,
) -> list[RankedItem]:
    """Merge two rankings by position only; score magnitudes are ignored.

    An ID absent from one list gets `missing_rank` there. Ties keep the
    order in which IDs were first seen (a first, then b).
    """
    rank_a = {}
    for pos, item in enumerate(a, 1):
        rank_a.setdefault(item.id, pos)
    rank_b = {}
    for pos, item in enumerate(b, 1):
        rank_b.setdefault(item.id, pos)

    union = list(dict.fromkeys([item.id for item in a] + [item.id for item in b]))
    fused = [
        RankedItem(
            cid,
            1 / (k + rank_a.get(cid, missing_rank)) + 1 / (k + rank_b.get(cid, missing_rank)),
        )
        for cid in union
    ]
    fused.sort(key=lambda x: x.score, reverse=True)
    return fused[:limit]
