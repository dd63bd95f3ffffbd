import hashlib
import math
import re

import pytest

from repolens.config import Config
from repolens.context import create_context
from repolens.health import HealthTracker
from repolens.vectorstore import VectorMatch

DIM = 8


class CharTokenizer:
    """One token per character; lossless round trip."""

    def encode(self, text):
        return [ord(c) for c in text]

    def decode(self, tokens):
        return "".join(chr(t) for t in tokens)


def hash_embedding(text: str, dim: int = DIM) -> list[float]:
    """Bag-of-words hashed into `dim` buckets, L2-normalized."""
    vec = [0.0] * dim
    for word in re.findall(r"\w+", text.lower()):
        vec[int(hashlib.md5(word.encode()).hexdigest(), 16) % dim] += 1.0
    norm = math.sqrt(sum(x * x for x in vec))
    if norm == 0:
        vec[0] = 1.0
        return vec
    return [x / norm for x in vec]


class FakeEmbeddingProvider:
    def __init__(self, dim: int = DIM, model_name: str = "fake-embed"):
        self.dim = dim
        self.model_name = model_name
        self.calls: list[list[str]] = []

    def embed(self, texts):
        self.calls.append(list(texts))
        return [hash_embedding(t, self.dim) for t in texts]


class InMemoryVectorIndex:
    """Cosine-similarity store with the same surface as ChromaVectorIndex."""

    def __init__(self, fail_on_batch: int | None = None):
        self.records: dict[str, tuple[str, object]] = {}
        self.upserts: list[tuple[str, int]] = []
        self.queries: list[dict] = []
        self.fail_on_batch = fail_on_batch

    def upsert(self, namespace, records):
        if self.fail_on_batch is not None and len(self.upserts) == self.fail_on_batch:
            raise ConnectionError("vector store unavailable")
        self.upserts.append((namespace, len(records)))
        for r in records:
            self.records[r.id] = (namespace, r)

    def query(self, vector, top_k, namespace=None):
        self.queries.append({"top_k": top_k, "namespace": namespace})
        scored = []
        for ns, r in self.records.values():
            if namespace and ns != namespace:
                continue
            score = sum(a * b for a, b in zip(vector, r.vector))
            scored.append(VectorMatch(r.id, score, r.metadata))
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def count(self, namespace=None):
        return sum(1 for ns, _ in self.records.values() if not namespace or ns == namespace)

    def namespaces(self):
        counts: dict[str, int] = {}
        for ns, _ in self.records.values():
            counts[ns] = counts.get(ns, 0) + 1
        return counts


@pytest.fixture
def tokenizer():
    return CharTokenizer()


@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex()


@pytest.fixture
def config(tmp_path):
    """Config pointing at tmp dirs, with a fake 8-dim embedding model."""
    return Config(
        workdir=str(tmp_path / "repos"),
        vectorstore_path=str(tmp_path / "vectorstore"),
        embedding_provider="openai",
        openai_embedding_model="fake-embed",
        embedding_dim=DIM,
        chunk_max_tokens=200,
        max_item_tokens=400,
    )


@pytest.fixture
def ctx(config, provider, tokenizer, vector_index):
    return create_context(
        config, provider=provider, tokenizer=tokenizer, vector_index=vector_index,
    )


@pytest.fixture
def sample_repo(tmp_path):
    """A small repository on disk."""
    root = tmp_path / "src" / "shop-api"
    files = {
        "README.md": "# Shop API\n\nREST API for the shop, built with FastAPI.\n",
        "app/auth.py": (
            "def authenticate(token):\n"
            "    \"\"\"Validate a JWT token and return the user.\"\"\"\n"
            "    return decode_jwt(token)\n"
        ),
        "app/payments.py": (
            "def charge(order, card):\n"
            "    \"\"\"Charge the customer's card for an order.\"\"\"\n"
            "    return stripe_charge(order.total, card)\n"
        ),
        "requirements.txt": "fastapi>=0.110\npydantic\n",
        "node_modules/lib/index.js": "module.exports = 1;\n",
        "logo.png": "not really a png",
        "empty.txt": "   \n",
    }
    for name, content in files.items():
        p = root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
    return root


@pytest.fixture
def health():
    return HealthTracker()
