# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
MCP Server factory – creates a FastMCP instance with tools
that share the retriever/pipeline from the main process.

Tools:
  - search_code: Hybrid (BM25 + vector) search in one or all repositories
  - find_projects_by_skill: Rank repositories by a skill/technology
  - ingest_repository: Ingest a local path or git URL
  - get_index_stats: Chunk counts per repository + health
"""
from mcp.server.fastmcp import FastMCP

from . import __version__
from .context import AppContext
from .errors import IngestionError


def create_mcp_server(ctx: AppContext) -> FastMCP:
    """Factory: returns a configured FastMCP server that shares state with web.py."""

    retriever = ctx.retriever
    health = ctx.health

    mcp = FastMCP(
        "repolens",
        instructions=(
            "Hybrid code search over ingested source repositories.\n\n"
            "WORKFLOW for the agent:\n"
            "1. get_index_stats() to see which repositories are ingested\n"
            "2. search_code(query, repository) for questions about one codebase\n"
            "3. Leave repository empty to search across all repositories\n"
            "4. find_projects_by_skill() to find which projects use a technology\n"
            "5. Prefer 2-3 targeted searches over one vague query"
        ),
    )

    @mcp.tool()
    def search_code(query: str, repository: str = "", limit: int = 8,
                    include_text: bool = True) -> str:
        """Hybrid keyword + semantic search over ingested source code.

        Args:
            query: What you are looking for (natural language or identifiers)
            repository: Repository ID to search in (empty = all repositories)
            limit: Number of snippets (default: 8)
            include_text: Include the snippet text (default: True)

        Returns:
            Matching snippets with file path and token range
        """
        snippets = retriever.retrieve(
            query, repository or None, limit=limit, include_text=include_text,
        )
        health.record_search("search_code", bool(snippets))

        if not snippets:
            return (
                "No matching code found. "
                "Try a different query or check the repository name with get_index_stats()."
            )

        output = []
        for i, s in enumerate(snippets, 1):
            header = f"**({i}) {s.path}** [tokens {s.start}-{s.end}]"
            output.append(f"{header}\n\n```\n{s.text}\n```\n\n---" if s.text else header)
        return "\n".join(output)

    @mcp.tool()
    def find_projects_by_skill(skill: str, limit: int = 20) -> str:
        """Find repositories that use a skill or technology.

        Args:
            skill: Technology name, e.g. "TypeScript", "Next.js", "Kafka"
            limit: Max repositories (default: 20)
        """
        matches = retriever.find_by_skill(skill, limit=limit)
        health.record_search("find_projects_by_skill", bool(matches))

        if not matches:
            return f'No projects found with skill: "{skill}"'

        output = [f'Projects with "{skill}" ({len(matches)} found)\n']
        for m in matches:
            tech = ", ".join(m.tech_stack[:5]) + ("..." if len(m.tech_stack) > 5 else "")
            output.append(
                f"- **{m.repository}** (score {m.score:.3f})\n"
                f"  Tech: {tech or 'unknown'}\n"
                f"  Files: {', '.join(m.sample_paths)}"
            )
        return "\n".join(output)

    @mcp.tool()
    def ingest_repository(source: str) -> str:
        """Ingest (or re-ingest) a repository so it becomes searchable.

        Args:
            source: Local directory, git URL, or GitHub "owner/name"
        """
        try:
            result = ctx.ingest(source)
        except IngestionError as e:
            return f"Ingestion failed at stage '{e.stage}' ({e.committed} records committed): {e}"
        return (
            f"Ingested **{result.repository}**: {result.files} files, "
            f"{result.chunks} chunks ({result.truncated} truncated), model {result.model}"
        )

    @mcp.tool()
    def get_index_stats() -> str:
        """Index statistics: repositories, chunk counts, health."""
        counts = ctx.vector_index.namespaces()
        status = health.status
        lines = [
            f"## Repolens v{__version__}",
            f"- Embedding model: {ctx.config.active_model}",
            f"- Total chunks: {sum(counts.values())}",
            f"- Searches: {status['searches_total']} "
            f"({status['searches_hits']} hits, {status['searches_misses']} misses)",
            "",
            "### Repositories",
        ]
        if not counts:
            lines.append("_none ingested yet_")
        for repo, n in sorted(counts.items()):
            lines.append(f"- {repo}: {n} chunks")
        if status["last_ingest_error"]:
            lines += ["", f"Last ingestion error: {status['last_ingest_error']}"]
        return "\n".join(lines)

    return mcp
