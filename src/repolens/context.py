# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Runtime wiring – one set of services shared by the CLI, Web API and MCP
server. Every collaborator can be injected (tests pass fakes).
"""
import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .cache import TTLCache
from .chunking import TiktokenTokenizer, Tokenizer
from .config import Config
from .embeddings import BatchEmbedder, EmbeddingProvider, create_embedding_provider
from .errors import IngestionError
from .health import HealthTracker
from .ingest import IngestionPipeline, IngestResult
from .lexical import LexicalRanker, create_lexical_ranker
from .retriever import HybridRetriever
from .vectorstore import ChromaVectorIndex, VectorIndex


@dataclass
class AppContext:
    config: Config
    vector_index: VectorIndex
    retriever: HybridRetriever
    pipeline: IngestionPipeline
    health: HealthTracker
    ingest_lock: threading.Lock = field(default_factory=threading.Lock)

    def ingest(self, source: str) -> IngestResult:
        """Serialized ingestion of one source, recorded in health."""
        with self.ingest_lock:
            try:
                result = self.pipeline.ingest_source(source)
            except IngestionError as e:
                self.health.record_ingest(
                    e.repository, ok=False, committed=e.committed, error=str(e),
                )
                raise
            self.health.record_ingest(
                result.repository, ok=True, files=result.files, chunks=result.chunks,
            )
        self.retriever.result_cache.clear()
        return result

    def ingest_many(self, sources: Sequence[str], concurrency: Optional[int] = None) -> dict:
        """Bulk ingestion under the same lock; every outcome is recorded in health."""
        with self.ingest_lock:
            summary = self.pipeline.ingest_many(sources, concurrency=concurrency)
            for r in summary["results"]:
                if r["status"] == "success":
                    self.health.record_ingest(
                        r["repository"], ok=True, files=r["files"], chunks=r["chunks"],
                    )
                else:
                    self.health.record_ingest(
                        r["repository"], ok=False, committed=r["committed"],
                        error=r["message"],
                    )
        self.retriever.result_cache.clear()
        return summary


def create_context(
    config: Config,
    provider: Optional[EmbeddingProvider] = None,
    tokenizer: Optional[Tokenizer] = None,
    vector_index: Optional[VectorIndex] = None,
    lexical: Optional[LexicalRanker] = None,
) -> AppContext:
    config.model_dimension()  # unknown model: ConfigurationError before any I/O
    provider = provider or create_embedding_provider(config)
    tokenizer = tokenizer or TiktokenTokenizer(provider.model_name, config.tokenizer_encoding)
    vector_index = vector_index or ChromaVectorIndex(
        config.vectorstore_path, config.collection_name,
    )
    lexical = lexical or create_lexical_ranker(config)

    embedder = BatchEmbedder.from_config(config, provider, tokenizer)
    retriever = HybridRetriever(
        config, provider, vector_index, lexical,
        embedding_cache=TTLCache(config.embedding_cache_ttl),
        result_cache=TTLCache(config.result_cache_ttl),
    )
    pipeline = IngestionPipeline(config, tokenizer, embedder, vector_index)
    return AppContext(
        config=config,
        vector_index=vector_index,
        retriever=retriever,
        pipeline=pipeline,
        health=HealthTracker(),
    )
