# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH. All rights reserved.
# Non-commercial use only. Commercial licensing: info@4rce.com

"""
Centralized health/status tracker – shared across ingestion, Web API and
MCP server. Thread-safe, no external dependencies.
"""
import threading
from datetime import datetime, timezone

SEARCH_TOOLS = ("search_code", "find_projects_by_skill")


class HealthTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self._data = {
            "last_ingest_at": None,
            "last_ingest_ok": None,
            "last_ingest_repository": None,
            "last_ingest_chunks": 0,
            "last_ingest_files": 0,
            "last_ingest_committed": 0,
            "last_ingest_error": None,
            "ingests_total": 0,
            "ingests_failed": 0,

            "started_at": datetime.now(timezone.utc).isoformat(),

            "searches_total": 0,
            "searches_hits": 0,
            "searches_misses": 0,
            "searches_by_tool": {tool: 0 for tool in SEARCH_TOOLS},
            "last_search_at": None,
        }

    def record_ingest(self, repository: str, ok: bool, files: int = 0, chunks: int = 0,
                      committed: int | None = None, error: str | None = None):
        with self._lock:
            self._data["last_ingest_at"] = datetime.now(timezone.utc).isoformat()
            self._data["last_ingest_ok"] = ok
            self._data["last_ingest_repository"] = repository
            self._data["last_ingest_files"] = files
            self._data["last_ingest_chunks"] = chunks
            self._data["last_ingest_committed"] = chunks if committed is None else committed
            self._data["last_ingest_error"] = error
            self._data["ingests_total"] += 1
            if not ok:
                self._data["ingests_failed"] += 1

    def record_search(self, tool: str, hit: bool):
        with self._lock:
            self._data["searches_total"] += 1
            if hit:
                self._data["searches_hits"] += 1
            else:
                self._data["searches_misses"] += 1
            by_tool = self._data["searches_by_tool"]
            if tool in by_tool:
                by_tool[tool] += 1
            self._data["last_search_at"] = datetime.now(timezone.utc).isoformat()

    @property
    def status(self) -> dict:
        with self._lock:
            d = dict(self._data)
            d["searches_by_tool"] = dict(self._data["searches_by_tool"])
            return d

    @property
    def is_healthy(self) -> bool:
        """Healthy until the most recent ingestion failed."""
        with self._lock:
            return self._data["last_ingest_ok"] is not False
