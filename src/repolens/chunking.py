# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
File text -> token IDs -> fixed token windows -> Chunks

Windows are non-overlapping: [0, max), [max, 2*max), ... with the last one
shorter. Each window is decoded back to text with the same tokenizer.

Chunk IDs are derived from (repository, path, start, end) so re-ingesting an
unchanged file yields the same IDs and overwrites the stored vectors.
"""
import hashlib
import threading
from dataclasses import dataclass
from typing import Protocol, Sequence


class Tokenizer(Protocol):
    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


class TiktokenTokenizer:
    """tiktoken BPE tokenizer, loaded on first use."""

    def __init__(self, model: str = "", encoding_name: str = "cl100k_base"):
        self.model = model
        self.encoding_name = encoding_name
        self._encoding = None
        self._lock = threading.Lock()

    def _get_encoding(self):
        with self._lock:
            if self._encoding is None:
                import tiktoken
                try:
                    self._encoding = tiktoken.encoding_for_model(self.model)
                except KeyError:
                    self._encoding = tiktoken.get_encoding(self.encoding_name)
            return self._encoding

    def encode(self, text: str) -> list[int]:
        # Source files may contain "<|endoftext|>" literally
        return self._get_encoding().encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._get_encoding().decode(list(tokens))


@dataclass(frozen=True)
class SourceFile:
    path: str
    text: str


@dataclass(frozen=True)
class Chunk:
    repository_id: str
    file_path: str
    start_token: int
    end_token: int
    token_count: int
    text: str

    @property
    def id(self) -> str:
        return make_chunk_id(
            self.repository_id, self.file_path, self.start_token, self.end_token,
        )


def make_chunk_id(repository_id: str, file_path: str, start: int, end: int) -> str:
    content = f"{repository_id}\n{file_path}\n{start}-{end}"
    return hashlib.sha256(content.encode()).hexdigest()[:32]


def chunk_text(
    repository_id: str,
    file_path: str,
    text: str,
    tokenizer: Tokenizer,
    max_tokens: int = 7500,
) -> list[Chunk]:
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")
    if not text or not text.strip():
        return []

    ids = tokenizer.encode(text)
    chunks = []
    for start in range(0, len(ids), max_tokens):
        window = ids[start:start + max_tokens]
        chunks.append(Chunk(
            repository_id=repository_id,
            file_path=file_path,
            start_token=start,
            end_token=start + len(window),
            token_count=len(window),
            text=tokenizer.decode(window),
        ))
    return chunks


def chunk_files(
    repository_id: str,
    files: Sequence[SourceFile],
    tokenizer: Tokenizer,
    max_tokens: int = 7500,
) -> list[Chunk]:
    """Flat chunk list over all files, in file order."""
    out: list[Chunk] = []
    for f in files:
        out.extend(chunk_text(repository_id, f.path, f.text, tokenizer, max_tokens))
    return out
