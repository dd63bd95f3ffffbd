# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH. All rights reserved.
# Non-commercial use only. Commercial licensing: info@4rce.com

"""
Command line interface: python -m repolens <command>

  ask         Search one repository (or all) for relevant code
  find        Find repositories by skill/technology
  ingest      Ingest repositories (local paths, git URLs, owner/name)
  ingest-all  Ingest many repositories concurrently
  stats       Chunk counts per repository
  serve       Web API + MCP server in a single process
"""
import argparse
import json
import sys
import threading

from . import __version__
from .config import Config
from .context import AppContext, create_context
from .errors import IngestionError, RepolensError
from .sources import find_git_repos


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ── Commands ─────────────────────────────────────────

def cmd_ask(ctx: AppContext, args) -> int:
    query = " ".join(args.query)
    snippets = ctx.retriever.retrieve(
        query, args.repo or None, limit=args.limit, include_text=not args.no_text,
    )
    if args.json:
        _print_json([s.to_dict() for s in snippets])
        return 0
    if not snippets:
        print("No matching code found.")
        return 0
    for i, s in enumerate(snippets, 1):
        print(f"({i}) {s.path} [tokens {s.start}-{s.end}]")
        if s.text:
            preview = s.text if len(s.text) <= 1200 else s.text[:1200] + "\n…"
            print(preview)
            print()
    return 0


def cmd_find(ctx: AppContext, args) -> int:
    skill = args.skill or " ".join(args.name)
    if not skill:
        print("Missing --skill or skill name", file=sys.stderr)
        return 1
    matches = ctx.retriever.find_by_skill(skill, limit=args.limit)
    if args.json:
        _print_json([m.to_dict() for m in matches])
        return 0
    if not matches:
        print(f'\nNo projects found with skill: "{skill}"')
        return 0
    print(f'\nProjects with "{skill}" ({len(matches)} found):\n')
    for m in matches:
        more = "..." if len(m.tech_stack) > 5 else ""
        print(f"  {m.repository}")
        print(f"    Tech: {', '.join(m.tech_stack[:5])}{more}")
        print(f"    Score: {m.score:.3f}")
        print()
    return 0


def cmd_ingest(ctx: AppContext, args) -> int:
    failed = 0
    results = []
    for source in args.sources:
        print(f"Ingesting {source} ...")
        try:
            result = ctx.ingest(source)
        except IngestionError as e:
            failed += 1
            print(f"  Failed: {e}", file=sys.stderr)
            results.append({"source": source, "status": "error", "message": str(e)})
            continue
        print(f"  {result.repository}: {result.files} files, {result.chunks} chunks")
        results.append({"source": source, "status": "success", **result.to_dict()})
    if args.json:
        _print_json(results)
    return 1 if failed else 0


def cmd_ingest_all(ctx: AppContext, args) -> int:
    sources = list(args.sources)
    if args.root:
        sources += [str(p) for p in find_git_repos(args.root)]
    if not sources:
        print("No repositories given (pass sources or --root)", file=sys.stderr)
        return 1

    print(f"Repos to ingest ({len(sources)}):")
    for s in sources:
        print(f"  - {s}")
    if args.dry_run:
        return 0

    summary = ctx.ingest_many(sources, concurrency=args.concurrency)
    if args.json:
        _print_json(summary)
    print(f"Done. Success: {summary['succeeded']}, Failed: {summary['failed']}")
    return 0 if summary["failed"] == 0 else 1


def cmd_stats(ctx: AppContext, args) -> int:
    counts = ctx.vector_index.namespaces()
    if args.json:
        _print_json({"total_chunks": sum(counts.values()), "repositories": counts})
        return 0
    print(f"Embedding model: {ctx.config.active_model}")
    print(f"Total chunks: {sum(counts.values())}")
    for repo, n in sorted(counts.items()):
        print(f"  {repo}: {n}")
    return 0


def _run_mcp_sse(mcp_server, host: str, port: int):
    """Run MCP server via SSE, compatible with both old and new mcp SDK versions."""
    import uvicorn
    # Try sse_app() first (mcp >= 1.20), fall back to run() for older versions
    try:
        sse_app = mcp_server.sse_app()
        uvicorn.run(sse_app, host=host, port=port, log_level="warning")
    except AttributeError:
        mcp_server.settings.host = host
        mcp_server.settings.port = port
        mcp_server.run(transport="sse")


def cmd_serve(ctx: AppContext, args) -> int:
    import uvicorn
    from .server import create_mcp_server
    from .web import create_web_app

    config = ctx.config
    transport = args.transport or config.transport

    web_app = create_web_app(ctx)
    mcp_server = create_mcp_server(ctx)

    def run_web():
        uvicorn.run(
            web_app, host="0.0.0.0", port=config.web_port,
            log_level="warning",
        )

    web_thread = threading.Thread(target=run_web, daemon=True)
    web_thread.start()
    print(f"Web API running on http://0.0.0.0:{config.web_port}")

    print(f"MCP server starting ({transport} transport)...")
    if transport == "sse":
        _run_mcp_sse(mcp_server, "0.0.0.0", config.sse_port)
    else:
        mcp_server.run(transport="stdio")
    return 0


# ── Parser ───────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repolens",
        description="Hybrid code search (BM25 + vectors) over source repositories",
        epilog="Environment: REPOLENS_OPENAI_API_KEY, REPOLENS_WORKDIR, "
               "REPOLENS_VECTORSTORE_PATH, REPOLENS_GIT_TOKEN",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Output JSON")
    common.add_argument("--debug", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ask", parents=[common], help="Search code in a repository")
    p.add_argument("query", nargs="+")
    p.add_argument("-r", "--repo", default="", help="Repository ID (default: all)")
    p.add_argument("-l", "--limit", type=int, default=8)
    p.add_argument("--no-text", action="store_true", help="Paths and ranges only")
    p.set_defaults(func=cmd_ask)

    p = sub.add_parser("find", parents=[common], help="Find projects by skill/technology")
    p.add_argument("name", nargs="*")
    p.add_argument("-s", "--skill", default="")
    p.add_argument("-l", "--limit", type=int, default=20)
    p.set_defaults(func=cmd_find)

    p = sub.add_parser("ingest", parents=[common], help="Ingest repositories")
    p.add_argument("sources", nargs="+", help="Local path, git URL or owner/name")
    p.set_defaults(func=cmd_ingest)

    p = sub.add_parser("ingest-all", parents=[common], help="Ingest many repositories")
    p.add_argument("sources", nargs="*")
    p.add_argument("--root", help="Ingest every git repository directly under this folder")
    p.add_argument("--concurrency", type=int, default=None, help="Concurrent ingests (1-5)")
    p.add_argument("--dry-run", action="store_true", help="List without ingesting")
    p.set_defaults(func=cmd_ingest_all)

    p = sub.add_parser("stats", parents=[common], help="Index statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("serve", parents=[common], help="Run Web API + MCP server")
    p.add_argument("--transport", choices=["stdio", "sse"], default=None)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None, ctx: AppContext | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if ctx is None:
            config = Config.load()
            if args.debug:
                config.debug = True
            ctx = create_context(config)
        elif args.debug:
            ctx.config.debug = True
        return args.func(ctx, args)
    except RepolensError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
