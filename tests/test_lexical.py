"""Tests for the BM25 corpus and prefix-expanded keyword ranking."""
from repolens.config import Config
from repolens.lexical import (
    Bm25Ranker, NullLexicalRanker, bm25_search, corpus_path, create_lexical_ranker,
    read_corpus, write_corpus,
)

DOCS = [
    {"id": "auth", "text": "def authenticate(token): validate the jwt token"},
    {"id": "pay", "text": "def charge(order, card): stripe payment for the order"},
    {"id": "mw", "text": "authorization headers are checked by the middleware"},
    {"id": "readme", "text": "Shop service documentation and setup guide"},
]


class TestCorpusFile:
    def test_round_trip(self, tmp_path):
        path = corpus_path(tmp_path, "shop")
        assert path == tmp_path / "shop" / ".bm25.jsonl"
        assert write_corpus(path, DOCS) == 4
        assert read_corpus(path) == DOCS

    def test_rewrite_replaces(self, tmp_path):
        path = corpus_path(tmp_path, "shop")
        write_corpus(path, DOCS)
        write_corpus(path, DOCS[:1])
        assert read_corpus(path) == DOCS[:1]
        assert not path.with_suffix(".tmp").exists()

    def test_missing_file(self, tmp_path):
        assert read_corpus(tmp_path / "nope.jsonl") is None

    def test_unicode_preserved(self, tmp_path):
        path = corpus_path(tmp_path, "r")
        write_corpus(path, [{"id": "u", "text": "größe ✓ 数据"}])
        assert read_corpus(path)[0]["text"] == "größe ✓ 数据"


class TestBm25Search:
    def test_prefix_expansion(self):
        ids = [h.id for h in bm25_search(DOCS, "auth")]
        assert set(ids) == {"auth", "mw"}

    def test_exact_term(self):
        hits = bm25_search(DOCS, "stripe")
        assert [h.id for h in hits] == ["pay"]
        assert hits[0].score > 0

    def test_best_match_first(self):
        hits = bm25_search(DOCS, "jwt token")
        assert hits[0].id == "auth"

    def test_no_matching_terms(self):
        assert bm25_search(DOCS, "kubernetes") == []

    def test_stopword_only_query(self):
        assert bm25_search(DOCS, "the and") == []

    def test_top_n(self):
        docs = [{"id": f"d{i}", "text": f"payment handler number {i}"} for i in range(10)]
        assert len(bm25_search(docs, "payment", top_n=3)) == 3


class TestBm25Ranker:
    def test_ranks_from_corpus_file(self, tmp_path):
        write_corpus(corpus_path(tmp_path, "shop"), DOCS)
        hits = Bm25Ranker(tmp_path).rank("shop", "authenticate")
        assert hits[0].id == "auth"

    def test_missing_corpus_is_empty(self, tmp_path):
        assert Bm25Ranker(tmp_path).rank("unknown", "auth") == []

    def test_malformed_corpus_is_empty(self, tmp_path, capsys):
        path = corpus_path(tmp_path, "shop")
        path.parent.mkdir(parents=True)
        path.write_text('{"id": "a", "text": "ok"}\nnot json\n')
        assert Bm25Ranker(tmp_path, debug=True).rank("shop", "ok") == []
        assert "[bm25]" in capsys.readouterr().out

    def test_record_without_text_is_empty(self, tmp_path):
        path = corpus_path(tmp_path, "shop")
        path.parent.mkdir(parents=True)
        path.write_text('{"id": "a"}\n')
        assert Bm25Ranker(tmp_path).rank("shop", "anything") == []

    def test_quiet_without_debug(self, tmp_path, capsys):
        Bm25Ranker(tmp_path).rank("unknown", "auth")
        assert capsys.readouterr().out == ""


class TestLexicalRankerSelection:
    def test_null_ranker(self):
        assert NullLexicalRanker().rank("shop", "auth") == []

    def test_hybrid_enabled(self, tmp_path):
        ranker = create_lexical_ranker(Config(workdir=str(tmp_path), hybrid_search=True))
        assert isinstance(ranker, Bm25Ranker)

    def test_hybrid_disabled(self):
        assert isinstance(create_lexical_ranker(Config(hybrid_search=False)), NullLexicalRanker)
