# Repolens – Hybrid code search over source repositories
# Copyright (c) 2026 4rce.com Digital Technologies GmbH.
# Use of this software is governed by the Business Source License 1.1. See LICENSE.md.

"""
Repository snapshots -> [SourceFile(path, text)]

A source is either a local directory or a git remote:
  https://github.com/org/repo(.git)   cloned (shallow) into <workdir>/<repo>
  org/repo                            shorthand for a GitHub URL
Already-cloned repositories are fast-forwarded instead of re-cloned.

Also detects a repository's tech stack (languages from file extensions,
frameworks from manifest files) for skill search.
"""
import json
import re
import subprocess
from pathlib import Path

from .chunking import SourceFile

SKIP_DIRS = {"node_modules", "dist", "build", "__pycache__", "venv", "target", "vendor"}
SKIP_SUFFIXES = {".lock", ".min.js", ".min.css", ".map"}

TEXT_EXTENSIONS = {
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".java", ".go", ".rb", ".rs", ".php",
    ".cs", ".cpp", ".c", ".h", ".hpp", ".kt", ".swift", ".scala",
    ".json", ".yml", ".yaml", ".toml", ".ini", ".cfg",
    ".md", ".txt", ".rst",
    ".html", ".css", ".scss", ".less", ".vue", ".svelte",
    ".sh", ".bash", ".zsh", ".env",
    ".sql", ".graphql", ".proto", ".tf",
}

_REMOTE_RE = re.compile(r"^(?:https?://|git@)")
_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


# ── Source resolution ────────────────────────────────

def is_remote(source: str) -> bool:
    if _REMOTE_RE.match(source):
        return True
    return bool(_SHORTHAND_RE.match(source)) and not Path(source).exists()


def normalize_remote(source: str) -> str:
    if _REMOTE_RE.match(source):
        return source
    return f"https://github.com/{source}.git"


def repo_id_from_source(source: str) -> str:
    """owner/name(.git), URL or local folder -> lowercase repository ID."""
    base = source.rstrip("/")
    name = re.split(r"[/:]", base)[-1] or "repo"
    return re.sub(r"\.git$", "", name, flags=re.IGNORECASE).lower()


def _auth_url(url: str, token: str) -> str:
    if token and url.startswith("https://github.com/"):
        return url.replace("https://", f"https://{token}@")
    return url


def _redact(text: str, token: str) -> str:
    return text.replace(token, "***") if token else text


def checkout(source: str, workdir: str | Path, token: str = "", branch: str = "") -> Path:
    """Make a remote source available locally; return its directory."""
    target = Path(workdir) / repo_id_from_source(source)

    if (target / ".git").exists():
        try:
            subprocess.run(
                ["git", "-C", str(target), "pull", "--ff-only"],
                capture_output=True, timeout=120, check=True,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            print(f"Warning: git pull failed for {target}, using existing checkout: {e}")
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    cmd = ["git", "clone", "--depth", "1", "--single-branch"]
    if branch:
        cmd += ["--branch", branch]
    url = normalize_remote(source)
    cmd += [_auth_url(url, token), str(target)]
    print(f"Cloning {url} -> {target}")
    # Errors carry the command line, which holds the token: re-raise without it
    try:
        subprocess.run(cmd, capture_output=True, text=True, timeout=600, check=True)
    except subprocess.CalledProcessError as e:
        detail = _redact((e.stderr or "").strip(), token) or f"exit status {e.returncode}"
        raise RuntimeError(f"git clone failed for {url}: {detail}") from None
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"git clone timed out for {url}") from None
    return target


def find_git_repos(root: str | Path) -> list[Path]:
    """Direct children of root that are git repositories."""
    root = Path(root)
    return sorted(
        child for child in root.iterdir()
        if child.is_dir() and (child / ".git").exists()
    )


# ── File listing ─────────────────────────────────────

def is_probably_text_path(path: str) -> bool:
    name = Path(path).name.lower()
    if any(name.endswith(s) for s in SKIP_SUFFIXES):
        return False
    suffix = Path(path).suffix.lower()
    if not suffix:
        return True
    return suffix in TEXT_EXTENSIONS


def list_repo_files(root: str | Path) -> list[str]:
    """Relative POSIX paths of text-like files, sorted."""
    root = Path(root)
    out: list[str] = []
    for p in root.rglob("*"):
        rel = p.relative_to(root)
        if any(part.startswith(".") or part in SKIP_DIRS for part in rel.parts[:-1]):
            continue
        if rel.name.startswith(".") or not p.is_file():
            continue
        if is_probably_text_path(rel.name):
            out.append(rel.as_posix())
    return sorted(out)


def read_files(root: str | Path, paths: list[str]) -> list[SourceFile]:
    root = Path(root)
    files: list[SourceFile] = []
    for rel in paths:
        try:
            text = (root / rel).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            print(f"Warning: could not read {rel}: {e}")
            continue
        if not text.strip():
            continue
        files.append(SourceFile(rel, text))
    return files


def load_repository(root: str | Path) -> list[SourceFile]:
    return read_files(root, list_repo_files(root))


# ── Tech stack detection ─────────────────────────────

LANGUAGES = {
    ".py": "Python", ".ts": "TypeScript", ".tsx": "TypeScript", ".js": "JavaScript",
    ".jsx": "JavaScript", ".mjs": "JavaScript", ".go": "Go", ".rs": "Rust",
    ".java": "Java", ".kt": "Kotlin", ".rb": "Ruby", ".php": "PHP", ".cs": "C#",
    ".cpp": "C++", ".hpp": "C++", ".c": "C", ".swift": "Swift", ".scala": "Scala",
    ".vue": "Vue", ".svelte": "Svelte", ".sql": "SQL", ".tf": "Terraform",
    ".sh": "Shell",
}

FRAMEWORKS = {
    "react": "React", "next": "Next.js", "vue": "Vue", "svelte": "Svelte",
    "@angular/core": "Angular", "express": "Express", "fastify": "Fastify",
    "@nestjs/core": "NestJS", "tailwindcss": "Tailwind CSS", "prisma": "Prisma",
    "django": "Django", "flask": "Flask", "fastapi": "FastAPI",
    "sqlalchemy": "SQLAlchemy", "pydantic": "Pydantic", "pandas": "pandas",
    "numpy": "NumPy", "torch": "PyTorch", "tensorflow": "TensorFlow",
    "langchain": "LangChain", "openai": "OpenAI", "celery": "Celery",
    "pytest": "pytest", "jest": "Jest", "vitest": "Vitest",
}

MANIFEST_TECH = {
    "Dockerfile": "Docker", "docker-compose.yml": "Docker",
    "Cargo.toml": "Rust", "go.mod": "Go", "Gemfile": "Ruby",
    "pom.xml": "Maven", "build.gradle": "Gradle",
}

_REQ_NAME_RE = re.compile(r"^\s*([A-Za-z0-9_.\-\[\]]+)")


def _package_json_deps(text: str) -> set[str]:
    try:
        data = json.loads(text)
    except ValueError:
        return set()
    if not isinstance(data, dict):
        return set()
    deps: set[str] = set()
    for key in ("dependencies", "devDependencies", "peerDependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            deps.update(section.keys())
    return deps


def _python_deps(text: str) -> set[str]:
    deps = set()
    for line in text.splitlines():
        line = line.strip().strip('",')
        if not line or line.startswith(("#", "[", "-")):
            continue
        m = _REQ_NAME_RE.match(line)
        if m:
            deps.add(m.group(1).split("[")[0].lower())
    return deps


def detect_tech_stack(files: list[SourceFile]) -> list[str]:
    tags: set[str] = set()
    deps: set[str] = set()
    for f in files:
        name = Path(f.path).name
        suffix = Path(f.path).suffix.lower()
        if suffix in LANGUAGES:
            tags.add(LANGUAGES[suffix])
        if name in MANIFEST_TECH:
            tags.add(MANIFEST_TECH[name])
        if name == "package.json":
            deps |= _package_json_deps(f.text)
        elif name in ("requirements.txt", "pyproject.toml"):
            deps |= _python_deps(f.text)
    for dep in deps:
        if dep in FRAMEWORKS:
            tags.add(FRAMEWORKS[dep])
    return sorted(tags)
