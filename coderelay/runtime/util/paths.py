"""Project directory resolution for user-supplied paths."""

from __future__ import annotations

import os
from pathlib import Path


def resolve_project_dir(
    raw: str,
    *,
    home: str | None = None,
    cwd: str | None = None,
) -> str | None:
    """Expand and normalise *raw* into an absolute path.

    ``~`` expands to *home*, ``.``/``..`` segments are collapsed, and a
    relative result is anchored at *cwd*.  Returns ``None`` only for empty
    or whitespace-only input; the filesystem is never consulted.

    >>> resolve_project_dir("~/src/app", home="/home/me")
    '/home/me/src/app'
    >>> resolve_project_dir("../x", cwd="/tmp/work")
    '/tmp/x'
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    expanded = raw.strip()
    if expanded.startswith("~"):
        base = home if home is not None else str(Path.home())
        rest = expanded[1:].lstrip("/")
        expanded = os.path.join(base, rest) if rest else base

    normalized = os.path.normpath(expanded)
    if os.path.isabs(normalized):
        return normalized
    anchor = cwd if cwd is not None else os.getcwd()
    return os.path.normpath(os.path.join(anchor, normalized))


def resolve_channel_project(name: str, workspace_root: str = "") -> str | None:
    """Resolve a project name taken from a channel label.

    A directory of that name under *workspace_root* wins; otherwise the
    name goes through :func:`resolve_project_dir`.
    """
    if not name or not name.strip():
        return None
    if workspace_root:
        root = resolve_project_dir(workspace_root)
        if root:
            candidate = Path(root) / name.strip()
            if candidate.is_dir():
                return str(candidate)
    return resolve_project_dir(name)


def repo_name(project_dir: str) -> str:
    if not project_dir:
        return "unknown"
    return os.path.basename(project_dir.rstrip("/")) or "unknown"
