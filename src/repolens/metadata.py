# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Chunk metadata as stored next to each vector, and the size fitter that keeps
it under the vector store's per-record budget.

Only `text` is ever shortened. The fitter binary-searches the longest prefix
that still fits once the ellipsis marker and `truncated=true` are added.
"""
import json
from typing import Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import MalformedRecordError

DEFAULT_METADATA_BUDGET = 40960
ELLIPSIS = "…"


class ChunkMetadata(BaseModel):
    repository_id: str
    file_path: str
    start_token: int
    end_token: int
    token_count: int
    model_name: str
    tech_stack: list[str] = Field(default_factory=list)
    text: Optional[str] = None
    truncated: Optional[bool] = None

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_payload(cls, payload: dict, record_id: str = "") -> "ChunkMetadata":
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise MalformedRecordError(
                f"Record '{record_id}' has malformed metadata: {e}"
            ) from e


def serialized_size(metadata: ChunkMetadata) -> int:
    """Bytes of the compact UTF-8 JSON encoding."""
    raw = json.dumps(metadata.to_payload(), ensure_ascii=False, separators=(",", ":"))
    return len(raw.encode("utf-8"))


def fit_metadata(
    metadata: ChunkMetadata,
    budget: int = DEFAULT_METADATA_BUDGET,
    size: Callable[[ChunkMetadata], int] = serialized_size,
) -> ChunkMetadata:
    """Return metadata whose size is <= budget where possible.

    `size` measures the form the store actually persists; it defaults to
    the compact JSON of the payload.

    Never raises for size reasons: if even an empty text does not fit, the
    empty-text record is returned and the caller decides.
    """
    if metadata.text is None or size(metadata) <= budget:
        return metadata

    text = metadata.text

    def candidate(length: int) -> ChunkMetadata:
        return metadata.model_copy(
            update={"text": text[:length] + ELLIPSIS, "truncated": True},
        )

    if size(candidate(0)) > budget:
        return candidate(0)

    lo, hi = 0, len(text)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if size(candidate(mid)) <= budget:
            lo = mid
        else:
            hi = mid - 1
    return candidate(lo)
