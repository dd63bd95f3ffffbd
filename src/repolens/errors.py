# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Error taxonomy.

ConfigurationError and the input-validation errors are fatal to the current
call. Lexical-search problems never surface as exceptions; they degrade to
an empty ranking inside repolens.lexical.
"""


class RepolensError(Exception):
    """Base class for all errors raised by repolens."""


class ConfigurationError(RepolensError):
    """Missing model dimension, missing credentials, invalid settings."""


class ChunkTooLargeError(RepolensError):
    def __init__(self, index: int, tokens: int, limit: int):
        self.index = index
        self.tokens = tokens
        self.limit = limit
        super().__init__(
            f"Embedding input #{index} has {tokens} tokens, limit is {limit}"
        )


class EmbeddingValidationError(RepolensError):
    """Provider returned the wrong number of vectors or wrong dimension."""


class MalformedRecordError(RepolensError):
    """Vector-store metadata that does not describe a chunk."""


class IngestionError(RepolensError):
    def __init__(self, stage: str, repository: str, committed: int = 0,
                 message: str = ""):
        self.stage = stage
        self.repository = repository
        self.committed = committed
        detail = f": {message}" if message else ""
        super().__init__(
            f"Ingestion of '{repository}' failed at stage '{stage}' "
            f"({committed} records committed){detail}"
        )
