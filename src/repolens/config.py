# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH. All rights reserved.
# Non-commercial use only. Commercial licensing: info@4rce.com

"""
Central configuration – configurable via:
1. Environment variables (REPOLENS_ prefix)
2. .env file
3. JSON overrides file (REPOLENS_CONFIG_FILE, default /data/config.json)
"""
import json
import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

CONFIG_FILE = Path(os.environ.get("REPOLENS_CONFIG_FILE", "/data/config.json"))


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPOLENS_", env_file=".env", extra="ignore",
    )

    # ── Storage ──────────────────────────────────
    workdir: str = "/data/repos"
    vectorstore_path: str = "/data/vectorstore"
    collection_name: str = "repo_chunks"

    # ── Embeddings ───────────────────────────────
    embedding_provider: Literal["local", "openai"] = "openai"
    embedding_model: str = "all-MiniLM-L6-v2"
    openai_api_key: str = ""
    openai_embedding_model: str = "text-embedding-3-large"
    embedding_dim: int = 0  # 0 = look up in MODEL_DIMS
    embed_batch_size: int = 64
    embed_concurrency: int = 1
    max_item_tokens: int = 8192

    # ── Chunking ─────────────────────────────────
    chunk_max_tokens: int = 7500
    tokenizer_encoding: str = "cl100k_base"

    # ── Vector records ───────────────────────────
    upsert_batch_size: int = 64
    metadata_max_bytes: int = 40960
    store_text: bool = True

    # ── Hybrid search ────────────────────────────
    hybrid_search: bool = True
    write_bm25: bool = True
    rrf_k: int = 60
    bm25_top_k: int = 40
    vector_top_k: int = 40
    global_top_k: int = 80
    fused_top_k: int = 20
    skill_top_k: int = 100
    skill_boost: float = 1.5

    # ── Caches (seconds) ─────────────────────────
    embedding_cache_ttl: float = 60
    result_cache_ttl: float = 10
    skill_cache_ttl: float = 30

    # ── Git sources ──────────────────────────────
    git_token: str = ""
    git_branch: str = ""
    ingest_concurrency: int = 2

    # ── Server / Transport ───────────────────────
    transport: Literal["stdio", "sse"] = "sse"
    sse_port: int = 8081
    web_port: int = 8080

    debug: bool = False

    @classmethod
    def load(cls) -> "Config":
        """Load config: ENV -> .env -> config.json overrides."""
        config = cls()

        if CONFIG_FILE.exists():
            try:
                overrides = json.loads(CONFIG_FILE.read_text())
                for key, value in overrides.items():
                    if hasattr(config, key) and value != "":
                        setattr(config, key, value)
            except Exception as e:
                print(f"Warning: Config file error: {e}")

        return config

    def save(self):
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(
            json.dumps(self.model_dump(), indent=2, default=str)
        )

    def to_safe_dict(self) -> dict:
        """Config without secrets (for display)."""
        d = self.model_dump()
        if d.get("openai_api_key"):
            d["openai_api_key"] = d["openai_api_key"][:8] + "..."
        if d.get("git_token"):
            d["git_token"] = "***set***"
        return d

    @property
    def active_model(self) -> str:
        if self.embedding_provider == "local":
            return self.embedding_model
        return self.openai_embedding_model

    def model_dimension(self) -> int:
        """Vector length of the active model; fixed at configuration time."""
        if self.embedding_dim > 0:
            return self.embedding_dim
        dim = MODEL_DIMS.get(self.active_model)
        if not dim:
            raise ConfigurationError(
                f"Unknown dimension for embedding model '{self.active_model}'. "
                f"Set REPOLENS_EMBEDDING_DIM."
            )
        return dim


LOCAL_MODELS = [
    {
        "id": "all-MiniLM-L6-v2",
        "name": "MiniLM-L6 v2",
        "dim": 384,
        "desc": "Ideal for large repos, low RAM",
    },
    {
        "id": "all-mpnet-base-v2",
        "name": "MPNet Base v2",
        "dim": 768,
        "desc": "Sentence-Transformers standard",
    },
    {
        "id": "BAAI/bge-base-en-v1.5",
        "name": "BGE Base EN v1.5",
        "dim": 768,
        "desc": "Best value for English",
    },
    {
        "id": "jinaai/jina-embeddings-v2-base-code",
        "name": "Jina Embeddings v2 Code",
        "dim": 768,
        "desc": "Trained on code + docstrings",
    },
    {
        "id": "BAAI/bge-m3",
        "name": "BGE-M3",
        "dim": 1024,
        "desc": "Best multilingual model",
    },
]

OPENAI_MODELS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

MODEL_DIMS: dict[str, int] = {
    **{m["id"]: m["dim"] for m in LOCAL_MODELS},
    **OPENAI_MODELS,
}
