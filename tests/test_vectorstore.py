"""Tests for the ChromaDB-backed namespaced vector index."""
import json

import pytest

from repolens.errors import MalformedRecordError
from repolens.metadata import ChunkMetadata, fit_metadata
from repolens.vectorstore import ChromaVectorIndex, IndexedRecord, stored_size


def _record(rid, vector, repo="shop", path="app.py", **kw):
    meta = ChunkMetadata(
        repository_id=repo, file_path=path, start_token=0, end_token=5,
        token_count=5, model_name="fake-embed", text=f"text of {rid}", **kw,
    )
    return IndexedRecord(rid, vector, meta)


@pytest.fixture
def index(tmp_path):
    return ChromaVectorIndex(str(tmp_path / "vectorstore"), "test_chunks")


class TestChromaVectorIndex:
    def test_empty_index(self, index):
        assert index.count() == 0
        assert index.query([1.0, 0.0, 0.0], 10) == []
        assert index.namespaces() == {}

    def test_upsert_and_query(self, index):
        index.upsert("shop", [
            _record("a", [1.0, 0.0, 0.0]),
            _record("b", [0.0, 1.0, 0.0]),
        ])
        matches = index.query([1.0, 0.0, 0.0], 10)
        assert [m.id for m in matches] == ["a", "b"]
        assert matches[0].score == pytest.approx(1.0, abs=1e-4)
        assert matches[0].metadata.text == "text of a"

    def test_upsert_overwrites_same_id(self, index):
        index.upsert("shop", [_record("a", [1.0, 0.0, 0.0], path="old.py")])
        index.upsert("shop", [_record("a", [1.0, 0.0, 0.0], path="new.py")])
        assert index.count() == 1
        assert index.query([1.0, 0.0, 0.0], 1)[0].metadata.file_path == "new.py"

    def test_namespace_filter(self, index):
        index.upsert("shop", [_record("s1", [1.0, 0.0, 0.0])])
        index.upsert("blog", [_record("b1", [1.0, 0.1, 0.0], repo="blog")])
        assert [m.id for m in index.query([1.0, 0.0, 0.0], 10, namespace="blog")] == ["b1"]
        assert {m.id for m in index.query([1.0, 0.0, 0.0], 10)} == {"s1", "b1"}

    def test_counts_per_namespace(self, index):
        index.upsert("shop", [_record(f"s{i}", [1.0, float(i), 0.0]) for i in range(3)])
        index.upsert("blog", [_record("b1", [0.0, 0.0, 1.0], repo="blog")])
        assert index.count() == 4
        assert index.count("shop") == 3
        assert index.count("missing") == 0
        assert index.namespaces() == {"shop": 3, "blog": 1}

    def test_top_k_larger_than_namespace(self, index):
        index.upsert("shop", [_record("s1", [1.0, 0.0, 0.0])])
        index.upsert("blog", [_record(f"b{i}", [0.0, 1.0, float(i)], repo="blog") for i in range(5)])
        assert len(index.query([1.0, 0.0, 0.0], 40, namespace="shop")) == 1

    def test_tech_stack_round_trip(self, index):
        index.upsert("shop", [_record("a", [1.0, 0.0, 0.0], tech_stack=["FastAPI", "Python"])])
        assert index.query([1.0, 0.0, 0.0], 1)[0].metadata.tech_stack == ["FastAPI", "Python"]

    def test_empty_tech_stack_round_trip(self, index):
        index.upsert("shop", [_record("a", [1.0, 0.0, 0.0])])
        assert index.query([1.0, 0.0, 0.0], 1)[0].metadata.tech_stack == []

    def test_truncated_flag_round_trip(self, index):
        index.upsert("shop", [_record("a", [1.0, 0.0, 0.0], truncated=True)])
        assert index.query([1.0, 0.0, 0.0], 1)[0].metadata.truncated is True

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "vs")
        ChromaVectorIndex(path, "persist_chunks").upsert("shop", [_record("a", [1.0, 0.0, 0.0])])
        assert ChromaVectorIndex(path, "persist_chunks").count("shop") == 1

    def test_malformed_record_raises(self, index):
        index.collection.add(
            ids=["bad"], embeddings=[[1.0, 0.0, 0.0]],
            metadatas=[{"namespace": "shop", "file_path": "x.py"}],
        )
        with pytest.raises(MalformedRecordError, match="bad"):
            index.query([1.0, 0.0, 0.0], 5, namespace="shop")


class TestStoredSize:
    def test_matches_persisted_metadata(self, index):
        record = _record("a", [1.0, 0.0, 0.0], repo="shop-api", tech_stack=["FastAPI", "Python"])
        index.upsert("shop-api", [record])
        [raw] = index.collection.get(ids=["a"], include=["metadatas"])["metadatas"]
        persisted = json.dumps(dict(raw), ensure_ascii=False, separators=(",", ":"))
        assert stored_size("shop-api", record.metadata) == len(persisted.encode("utf-8"))

    def test_fitted_record_stays_within_budget_once_stored(self, index):
        meta = ChunkMetadata(
            repository_id="shop-api", file_path="src/big.py", start_token=0,
            end_token=7500, token_count=7500, model_name="fake-embed",
            tech_stack=["FastAPI", "Python"], text="x" * 50 * 1024,
        )
        fitted = fit_metadata(meta, 40960, size=lambda m: stored_size("shop-api", m))
        assert fitted.truncated is True
        index.upsert("shop-api", [IndexedRecord("big", [1.0, 0.0, 0.0], fitted)])
        [raw] = index.collection.get(ids=["big"], include=["metadatas"])["metadatas"]
        persisted = json.dumps(dict(raw), ensure_ascii=False, separators=(",", ":"))
        assert len(persisted.encode("utf-8")) <= 40960
