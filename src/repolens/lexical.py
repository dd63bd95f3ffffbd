# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
BM25 keyword ranking over a per-repository corpus file.

Ingestion writes <workdir>/<repository>/.bm25.jsonl (one {"id", "text"} per
line). At query time the file is loaded into a bm25s index; query terms are
expanded to every vocabulary token they prefix ("auth" -> "auth",
"authenticate", "authorization", ...).

A missing or broken corpus is never an error: the ranker returns [] and
hybrid search falls back to the vector ranking alone.
"""
import json
from pathlib import Path
from typing import Protocol

import bm25s

from .config import Config
from .fusion import RankedItem

BM25_FILENAME = ".bm25.jsonl"


def corpus_path(workdir: str | Path, repository_id: str) -> Path:
    return Path(workdir) / repository_id / BM25_FILENAME


def write_corpus(path: Path, docs: list[dict]) -> int:
    """Write {id, text} documents as JSON lines, replacing the old file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        for doc in docs:
            f.write(json.dumps({"id": doc["id"], "text": doc["text"]}, ensure_ascii=False))
            f.write("\n")
    tmp.replace(path)
    return len(docs)


def read_corpus(path: Path) -> list[dict] | None:
    """Documents from a corpus file, or None if it does not exist."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return [json.loads(line) for line in content.splitlines() if line.strip()]


class LexicalRanker(Protocol):
    def rank(self, repository_id: str, query: str, top_n: int = 40) -> list[RankedItem]: ...


class NullLexicalRanker:
    """Used when hybrid search is disabled: contributes nothing."""

    def rank(self, repository_id: str, query: str, top_n: int = 40) -> list[RankedItem]:
        return []


class Bm25Ranker:
    def __init__(self, workdir: str | Path, debug: bool = False):
        self.workdir = Path(workdir)
        self.debug = debug

    def rank(self, repository_id: str, query: str, top_n: int = 40) -> list[RankedItem]:
        path = corpus_path(self.workdir, repository_id)
        try:
            docs = read_corpus(path)
        except Exception as e:
            self._debug(f"BM25 corpus unreadable ({path}): {e}")
            return []
        if not docs:
            self._debug(f"BM25 corpus missing or empty: {path}")
            return []
        try:
            return bm25_search(docs, query, top_n)
        except Exception as e:
            self._debug(f"BM25 search failed for '{repository_id}': {e}")
            return []

    def _debug(self, msg: str):
        if self.debug:
            print(f"[bm25] {msg}")


def bm25_search(docs: list[dict], query: str, top_n: int = 40) -> list[RankedItem]:
    """Rank docs against query with prefix-expanded terms. Scores > 0 only."""
    ids = [d["id"] for d in docs]
    corpus_tokens = bm25s.tokenize(
        [d["text"] for d in docs], stopwords="en", show_progress=False,
    )
    vocab: dict[str, int] = corpus_tokens.vocab
    terms = bm25s.tokenize(
        [query], stopwords="en", return_ids=False, show_progress=False,
    )[0]
    expanded = sorted({tok for term in terms for tok in vocab if tok and tok.startswith(term)})
    if not expanded:
        return []

    retriever = bm25s.BM25()
    retriever.index(corpus_tokens, show_progress=False)
    k = min(top_n, len(ids))
    results, scores = retriever.retrieve([expanded], k=k, show_progress=False)

    hits: list[RankedItem] = []
    for i in range(results.shape[1]):
        idx = int(results[0, i])
        score = float(scores[0, i])
        if idx < 0 or idx >= len(ids) or score <= 0:
            continue
        hits.append(RankedItem(ids[idx], score))
    return hits


def create_lexical_ranker(config: Config) -> LexicalRanker:
    """Pick the lexical ranker once, at startup."""
    if config.hybrid_search:
        return Bm25Ranker(config.workdir, debug=config.debug)
    return NullLexicalRanker()
