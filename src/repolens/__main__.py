# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH. All rights reserved.
# Non-commercial use only. Commercial licensing: info@4rce.com

"""
Unified entry point: python -m repolens

`python -m repolens serve` runs Web API + MCP server in a single process
with shared state; the other commands are one-shot (see repolens.cli).
"""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
