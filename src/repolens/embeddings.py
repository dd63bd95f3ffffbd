# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Embedding providers and the batch embedder used by ingestion.

Providers:
- "openai": OpenAI embeddings API (text-embedding-3-large by default)
- "local":  sentence-transformers model via ChromaDB's embedding function

The batch embedder never truncates input. Oversized items and malformed
provider responses abort the whole call; vectors are never used partially.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, Sequence

from .chunking import Tokenizer
from .config import Config
from .errors import ChunkTooLargeError, ConfigurationError, EmbeddingValidationError


class EmbeddingProvider(Protocol):
    model_name: str

    def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class OpenAIEmbeddingProvider:
    def __init__(self, api_key: str, model_name: str = "text-embedding-3-large"):
        if not api_key:
            raise ConfigurationError("OpenAI API key missing (REPOLENS_OPENAI_API_KEY)")
        from openai import OpenAI
        self.model_name = model_name
        self._client = OpenAI(api_key=api_key)

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        response = self._client.embeddings.create(model=self.model_name, input=list(texts))
        return [list(item.embedding) for item in response.data]


class LocalEmbeddingProvider:
    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        from chromadb.utils import embedding_functions
        self.model_name = model_name
        self._ef = embedding_functions.SentenceTransformerEmbeddingFunction(
            model_name=model_name
        )

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        return [[float(x) for x in vec] for vec in self._ef(list(texts))]


def create_embedding_provider(config: Config) -> EmbeddingProvider:
    if config.embedding_provider == "local":
        return LocalEmbeddingProvider(config.embedding_model)
    return OpenAIEmbeddingProvider(config.openai_api_key, config.openai_embedding_model)


def validate_vectors(vectors: list, expected_count: int, dimension: int) -> None:
    if len(vectors) != expected_count:
        raise EmbeddingValidationError(
            f"Provider returned {len(vectors)} vectors for {expected_count} inputs"
        )
    for i, vec in enumerate(vectors):
        if len(vec) != dimension:
            raise EmbeddingValidationError(
                f"Embedding #{i} has dimension {len(vec)}, expected {dimension}"
            )


class BatchEmbedder:
    def __init__(
        self,
        provider: EmbeddingProvider,
        tokenizer: Tokenizer,
        dimension: int,
        batch_size: int = 64,
        max_item_tokens: int = 8192,
        concurrency: int = 1,
    ):
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
        self.provider = provider
        self.tokenizer = tokenizer
        self.dimension = dimension
        self.batch_size = batch_size
        self.max_item_tokens = max_item_tokens
        self.concurrency = max(1, concurrency)

    @classmethod
    def from_config(cls, config: Config, provider: EmbeddingProvider,
                    tokenizer: Tokenizer) -> "BatchEmbedder":
        return cls(
            provider, tokenizer, config.model_dimension(),
            batch_size=config.embed_batch_size,
            max_item_tokens=config.max_item_tokens,
            concurrency=config.embed_concurrency,
        )

    def batches(self, texts: Sequence[str]) -> list[tuple[int, list[str]]]:
        """(offset, batch) pairs of at most batch_size items."""
        return [
            (i, list(texts[i:i + self.batch_size]))
            for i in range(0, len(texts), self.batch_size)
        ]

    def _check_tokens(self, offset: int, batch: list[str]):
        for j, text in enumerate(batch):
            n = len(self.tokenizer.encode(text))
            if n > self.max_item_tokens:
                raise ChunkTooLargeError(offset + j, n, self.max_item_tokens)

    def _request(self, batch: list[str]) -> list[list[float]]:
        vectors = self.provider.embed(batch)
        validate_vectors(vectors, len(batch), self.dimension)
        return vectors

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed all texts; result[i] belongs to texts[i]."""
        batches = self.batches(texts)
        if not batches:
            return []

        out: list[list[float]] = []
        if self.concurrency == 1 or len(batches) == 1:
            for offset, batch in batches:
                self._check_tokens(offset, batch)
                out.extend(self._request(batch))
            return out

        # Every batch passes the token check before any request is sent
        for item in batches:
            self._check_tokens(*item)
        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            for vectors in pool.map(self._request, [b for _, b in batches]):
                out.extend(vectors)
        return out
