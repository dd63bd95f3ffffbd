# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Query -> ranked chunks.

  result cache ─hit─> done
      │ miss
  BM25 (only when a repository is given)
  query embedding (embedding cache, 60s)
  vector KNN (repository namespace, or all repositories with a wider net)
  RRF fuse -> resolve IDs against the vector response -> result cache (10s)

The vector path is load-bearing: its errors propagate. The lexical path
never raises (see repolens.lexical).
"""
from dataclasses import asdict, dataclass, field
from typing import Optional

from .cache import TTLCache
from .config import Config
from .embeddings import EmbeddingProvider, validate_vectors
from .fusion import RankedItem, rrf_fuse
from .lexical import LexicalRanker, NullLexicalRanker
from .metadata import ChunkMetadata
from .vectorstore import VectorIndex


@dataclass
class Snippet:
    path: str
    start: int
    end: int
    text: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"path": self.path, "start": self.start, "end": self.end}
        if self.text is not None:
            d["text"] = self.text
        return d


@dataclass
class SkillMatch:
    repository: str
    tech_stack: list[str]
    score: float
    sample_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class HybridRetriever:
    def __init__(
        self,
        config: Config,
        provider: EmbeddingProvider,
        vector_index: VectorIndex,
        lexical: Optional[LexicalRanker] = None,
        embedding_cache: Optional[TTLCache] = None,
        result_cache: Optional[TTLCache] = None,
    ):
        self.config = config
        self.provider = provider
        self.vector_index = vector_index
        self.lexical = lexical or NullLexicalRanker()
        self.dimension = config.model_dimension()
        self.embedding_cache = embedding_cache or TTLCache(config.embedding_cache_ttl)
        self.result_cache = result_cache or TTLCache(config.result_cache_ttl)

    # ── Query embedding ──────────────────────────────

    def embed_query(self, text: str) -> list[float]:
        key = f"{self.provider.model_name}::{text}"
        cached = self.embedding_cache.get(key)
        if cached is not None:
            return cached
        vectors = self.provider.embed([text])
        validate_vectors(vectors, 1, self.dimension)
        self.embedding_cache.set(key, vectors[0])
        return vectors[0]

    # ── Hybrid search ────────────────────────────────

    def search(self, query: str, repository_id: Optional[str] = None) -> list[ChunkMetadata]:
        """Fused top chunks for query, in one repository or across all."""
        cache_key = f"{repository_id or '*'}::{query}"
        cached = self.result_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        cfg = self.config
        bm_results: list[RankedItem] = []
        if repository_id:
            bm_results = self.lexical.rank(repository_id, query, cfg.bm25_top_k)

        vector = self.embed_query(query)
        if repository_id:
            matches = self.vector_index.query(vector, cfg.vector_top_k, namespace=repository_id)
        else:
            matches = self.vector_index.query(vector, cfg.global_top_k)
        knn = [RankedItem(m.id, m.score) for m in matches]

        fused = rrf_fuse(bm_results, knn, k=cfg.rrf_k, limit=cfg.fused_top_k)
        meta_by_id = {m.id: m.metadata for m in matches}
        results = [meta_by_id[f.id] for f in fused if f.id in meta_by_id]

        if cfg.debug:
            print(
                f"[search] repo={repository_id or '*'} bm25={len(bm_results)} "
                f"knn={len(knn)} fused={len(fused)} resolved={len(results)}"
            )

        self.result_cache.set(cache_key, list(results))
        return results

    def retrieve(
        self,
        query: str,
        repository_id: Optional[str] = None,
        limit: int = 8,
        include_text: bool = True,
    ) -> list[Snippet]:
        return [
            Snippet(
                path=m.file_path,
                start=m.start_token,
                end=m.end_token,
                text=m.text if include_text else None,
            )
            for m in self.search(query, repository_id)[:limit]
        ]

    # ── Skill search (across repositories) ───────────

    def find_by_skill(self, skill: str, limit: int = 20) -> list[SkillMatch]:
        """Repositories whose code is closest to a skill/technology name.

        Repositories that already list the skill in their detected tech
        stack get their score multiplied by `skill_boost`.
        """
        cache_key = f"skill:{skill}"
        cached = self.result_cache.get(cache_key)
        if cached is not None:
            return cached[:limit]

        cfg = self.config
        vector = self.embed_query(skill)
        matches = self.vector_index.query(vector, cfg.skill_top_k)

        stacks: dict[str, set[str]] = {}
        best_raw: dict[str, float] = {}
        paths: dict[str, list[str]] = {}
        for m in matches:
            repo = m.metadata.repository_id
            stacks.setdefault(repo, set()).update(m.metadata.tech_stack)
            best_raw[repo] = max(best_raw.get(repo, float("-inf")), m.score)
            repo_paths = paths.setdefault(repo, [])
            if m.metadata.file_path not in repo_paths and len(repo_paths) < 5:
                repo_paths.append(m.metadata.file_path)

        needle = skill.lower()
        ranked = []
        for repo, raw in best_raw.items():
            boost = cfg.skill_boost if any(needle in t.lower() for t in stacks[repo]) else 1.0
            ranked.append(SkillMatch(
                repository=repo,
                tech_stack=sorted(stacks[repo]),
                score=raw * boost,
                sample_paths=paths[repo],
            ))
        ranked.sort(key=lambda r: r.score, reverse=True)

        self.result_cache.set(cache_key, ranked, ttl=cfg.skill_cache_ttl)
        return ranked[:limit]
