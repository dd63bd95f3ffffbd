# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Repository snapshot -> Chunks -> Embeddings -> fitted records -> vector index

Stages, in order: chunk, embed, upsert, lexical. A failure in any stage
raises IngestionError naming the stage and how many records were already
upserted. Nothing is rolled back: chunk IDs are deterministic, so re-running
the same ingestion overwrites whatever was committed.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Sequence

from .chunking import Chunk, SourceFile, Tokenizer, chunk_files
from .config import Config
from .embeddings import BatchEmbedder
from .errors import IngestionError, RepolensError
from .lexical import corpus_path, write_corpus
from .metadata import ChunkMetadata, fit_metadata
from .sources import (
    checkout, detect_tech_stack, is_remote, load_repository, repo_id_from_source,
)
from .vectorstore import IndexedRecord, VectorIndex, stored_size

MAX_INGEST_CONCURRENCY = 5


@dataclass
class IngestResult:
    repository: str
    namespace: str
    files: int
    chunks: int
    truncated: int
    model: str

    def to_dict(self) -> dict:
        return asdict(self)


class IngestionPipeline:
    def __init__(
        self,
        config: Config,
        tokenizer: Tokenizer,
        embedder: BatchEmbedder,
        vector_index: VectorIndex,
    ):
        self.config = config
        self.tokenizer = tokenizer
        self.embedder = embedder
        self.vector_index = vector_index

    def _build_record(self, chunk: Chunk, vector: list[float],
                      tech_stack: Sequence[str]) -> IndexedRecord:
        metadata = ChunkMetadata(
            repository_id=chunk.repository_id,
            file_path=chunk.file_path,
            start_token=chunk.start_token,
            end_token=chunk.end_token,
            token_count=chunk.token_count,
            model_name=self.embedder.provider.model_name,
            tech_stack=list(tech_stack),
            text=chunk.text if self.config.store_text else None,
        )
        fitted = fit_metadata(
            metadata, self.config.metadata_max_bytes,
            size=lambda m: stored_size(chunk.repository_id, m),
        )
        return IndexedRecord(chunk.id, vector, fitted)

    def ingest_files(
        self,
        repository_id: str,
        files: Sequence[SourceFile],
        tech_stack: Sequence[str] = (),
    ) -> IngestResult:
        cfg = self.config

        try:
            chunks = chunk_files(repository_id, files, self.tokenizer, cfg.chunk_max_tokens)
        except Exception as e:
            raise IngestionError("chunk", repository_id, 0, str(e)) from e

        try:
            vectors = self.embedder.embed([c.text for c in chunks])
        except Exception as e:
            raise IngestionError("embed", repository_id, 0, str(e)) from e
        if len(vectors) != len(chunks) or any(len(v) != self.embedder.dimension for v in vectors):
            raise IngestionError(
                "embed", repository_id, 0,
                f"embedding dimension mismatch, expected {self.embedder.dimension}",
            )

        records = [self._build_record(c, v, tech_stack) for c, v in zip(chunks, vectors)]
        truncated = sum(1 for r in records if r.metadata.truncated)

        print(f"Upserting {len(records)} records for '{repository_id}'")
        committed = 0
        batch_size = cfg.upsert_batch_size
        for i in range(0, len(records), batch_size):
            batch = records[i:i + batch_size]
            try:
                self.vector_index.upsert(repository_id, batch)
            except Exception as e:
                raise IngestionError("upsert", repository_id, committed, str(e)) from e
            committed += len(batch)
            if cfg.debug:
                print(f"  batch {i // batch_size + 1}: {len(batch)} records")

        if cfg.write_bm25:
            try:
                write_corpus(
                    corpus_path(cfg.workdir, repository_id),
                    [{"id": c.id, "text": c.text} for c in chunks],
                )
            except Exception as e:
                raise IngestionError("lexical", repository_id, committed, str(e)) from e

        return IngestResult(
            repository=repository_id,
            namespace=repository_id,
            files=len(files),
            chunks=len(chunks),
            truncated=truncated,
            model=self.embedder.provider.model_name,
        )

    def ingest_source(self, source: str, repository_id: str = "") -> IngestResult:
        """Ingest a local directory or a git remote."""
        cfg = self.config
        repository_id = repository_id or repo_id_from_source(source)
        try:
            if is_remote(source):
                root = checkout(source, cfg.workdir, cfg.git_token, cfg.git_branch)
            else:
                root = Path(source)
                if not root.is_dir():
                    raise FileNotFoundError(f"Path does not exist: {root}")
            files = load_repository(root)
        except Exception as e:
            raise IngestionError("fetch", repository_id, 0, str(e)) from e

        return self.ingest_files(repository_id, files, detect_tech_stack(files))

    def ingest_many(self, sources: Sequence[str], concurrency: int | None = None) -> dict:
        """Ingest several repositories in parallel; failures are collected."""
        if concurrency is None:
            concurrency = self.config.ingest_concurrency
        workers = max(1, min(concurrency, MAX_INGEST_CONCURRENCY))

        def _one(source: str) -> dict:
            print(f"Ingesting {source} ...")
            try:
                result = self.ingest_source(source)
            except RepolensError as e:
                print(f"  Failed: {e}")
                return {
                    "source": source,
                    "status": "error",
                    "repository": getattr(e, "repository", repo_id_from_source(source)),
                    "committed": getattr(e, "committed", 0),
                    "message": str(e),
                }
            print(f"  {result.repository}: {result.files} files, {result.chunks} chunks")
            return {"source": source, "status": "success", **result.to_dict()}

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_one, sources))

        succeeded = sum(1 for r in results if r["status"] == "success")
        return {
            "status": "success" if succeeded == len(results) else "partial",
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": results,
        }
