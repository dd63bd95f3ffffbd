# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH. All rights reserved.
# Non-commercial use only. Commercial licensing: info@4rce.com

"""
HTTP API (FastAPI) – search, skill search, ingestion, monitoring.
Runs in a background thread alongside the MCP server.

All state is injected via create_web_app().
"""
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from . import __version__
from .context import AppContext
from .errors import IngestionError


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    repository: Optional[str] = None
    limit: int = Field(default=8, ge=1, le=50)
    include_text: bool = True


class SkillRequest(BaseModel):
    skill: str = Field(min_length=1)
    limit: int = Field(default=20, ge=1, le=100)


class IngestRequest(BaseModel):
    source: str = Field(min_length=1)


def create_web_app(ctx: AppContext) -> FastAPI:
    """Factory: returns a FastAPI app that shares state with the MCP server."""

    app = FastAPI(
        title="Repolens",
        description="Hybrid code search over source repositories",
    )
    health = ctx.health

    # ── Health ───────────────────────────────────────

    @app.get("/health")
    async def health_check():
        status = health.status
        return {
            "status": "ok" if health.is_healthy else "degraded",
            "version": __version__,
            "chunks": ctx.vector_index.count(),
            "last_ingest_at": status.get("last_ingest_at"),
            "last_ingest_ok": status.get("last_ingest_ok"),
            "last_ingest_repository": status.get("last_ingest_repository"),
        }

    @app.get("/api/health")
    async def health_detail():
        return health.status

    # ── API Endpoints ────────────────────────────────

    @app.get("/api/stats")
    def get_stats():
        counts = ctx.vector_index.namespaces()
        return {
            "total_chunks": sum(counts.values()),
            "repositories": counts,
            "embedding_provider": ctx.config.embedding_provider,
            "embedding_model": ctx.config.active_model,
            "hybrid_search": ctx.config.hybrid_search,
        }

    @app.post("/api/search")
    def search(req: SearchRequest):
        snippets = ctx.retriever.retrieve(
            req.query, req.repository or None,
            limit=req.limit, include_text=req.include_text,
        )
        health.record_search("search_code", bool(snippets))
        return {
            "query": req.query,
            "repository": req.repository,
            "count": len(snippets),
            "results": [s.to_dict() for s in snippets],
        }

    @app.post("/api/skills")
    def find_by_skill(req: SkillRequest):
        matches = ctx.retriever.find_by_skill(req.skill, limit=req.limit)
        health.record_search("find_projects_by_skill", bool(matches))
        return {
            "skill": req.skill,
            "count": len(matches),
            "results": [m.to_dict() for m in matches],
        }

    @app.post("/api/ingest")
    def ingest(req: IngestRequest):
        try:
            result = ctx.ingest(req.source)
        except IngestionError as e:
            raise HTTPException(
                status_code=500,
                detail={
                    "message": str(e),
                    "stage": e.stage,
                    "repository": e.repository,
                    "committed": e.committed,
                },
            )
        return {"status": "success", **result.to_dict()}

    return app
