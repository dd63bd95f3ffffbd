# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Namespaced vector index on top of one persistent ChromaDB collection.

A namespace is the repository ID, stored as a metadata field and applied as
a `where` filter. Querying without a namespace searches every repository.

ChromaDB metadata values must be scalars, so `tech_stack` travels as a
comma-joined string. Metadata read back from the store is validated into
ChunkMetadata; a record that does not parse raises MalformedRecordError.
"""
import json
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import chromadb

from .metadata import ChunkMetadata

DEFAULT_COLLECTION = "repo_chunks"
NAMESPACE_KEY = "namespace"


@dataclass
class IndexedRecord:
    id: str
    vector: list[float]
    metadata: ChunkMetadata


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: ChunkMetadata


class VectorIndex(Protocol):
    def upsert(self, namespace: str, records: Sequence[IndexedRecord]) -> None: ...

    def query(self, vector: list[float], top_k: int,
              namespace: Optional[str] = None) -> list[VectorMatch]: ...

    def count(self, namespace: Optional[str] = None) -> int: ...

    def namespaces(self) -> dict[str, int]: ...


def _to_chroma(namespace: str, metadata: ChunkMetadata) -> dict:
    d = metadata.to_payload()
    d["tech_stack"] = ",".join(d.get("tech_stack", []))
    d[NAMESPACE_KEY] = namespace
    return d


def stored_size(namespace: str, metadata: ChunkMetadata) -> int:
    """Bytes of the metadata as persisted (compact UTF-8 JSON of the Chroma form)."""
    raw = json.dumps(
        _to_chroma(namespace, metadata), ensure_ascii=False, separators=(",", ":"),
    )
    return len(raw.encode("utf-8"))


def _from_chroma(record_id: str, raw: Optional[dict]) -> ChunkMetadata:
    d = dict(raw or {})
    d.pop(NAMESPACE_KEY, None)
    stack = d.get("tech_stack")
    if isinstance(stack, str):
        d["tech_stack"] = [t for t in stack.split(",") if t]
    return ChunkMetadata.from_payload(d, record_id)


class ChromaVectorIndex:
    def __init__(self, path: str, collection_name: str = DEFAULT_COLLECTION, client=None):
        self.chroma = client or chromadb.PersistentClient(path=path)
        self._collection_name = collection_name
        self.collection = self.chroma.get_or_create_collection(
            collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, namespace: str, records: Sequence[IndexedRecord]) -> None:
        if not records:
            return
        self.collection.upsert(
            ids=[r.id for r in records],
            embeddings=[r.vector for r in records],
            metadatas=[_to_chroma(namespace, r.metadata) for r in records],
        )

    def query(self, vector: list[float], top_k: int,
              namespace: Optional[str] = None) -> list[VectorMatch]:
        available = self.count(namespace)
        if available == 0:
            return []
        kwargs: dict = {
            "query_embeddings": [vector],
            "n_results": min(top_k, available),
            "include": ["metadatas", "distances"],
        }
        if namespace:
            kwargs["where"] = {NAMESPACE_KEY: namespace}
        results = self.collection.query(**kwargs)
        if not results["ids"] or not results["ids"][0]:
            return []
        return [
            VectorMatch(cid, 1 - float(dist), _from_chroma(cid, meta))
            for cid, meta, dist in zip(
                results["ids"][0],
                results["metadatas"][0],
                results["distances"][0],
            )
        ]

    def count(self, namespace: Optional[str] = None) -> int:
        if not namespace:
            return self.collection.count()
        result = self.collection.get(where={NAMESPACE_KEY: namespace}, include=[])
        return len(result["ids"])

    def namespaces(self) -> dict[str, int]:
        """Chunk count per namespace."""
        counts: dict[str, int] = {}
        result = self.collection.get(include=["metadatas"])
        for meta in result["metadatas"] or []:
            ns = (meta or {}).get(NAMESPACE_KEY, "")
            counts[ns] = counts.get(ns, 0) + 1
        return counts
