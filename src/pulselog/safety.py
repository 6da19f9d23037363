from __future__ import annotations

import sys
from pathlib import Path


def find_git_root(start: Path) -> Path | None:
    for cur in (start, *start.parents):
        if (cur / ".git").exists():
            return cur
    return None


def assert_safe_data_path(data_path: Path, allow_repo_data_path: bool) -> None:
    """Refuse to keep the activity log inside a git checkout, or on top of a directory."""
    if data_path.is_dir():
        print(f"🚫 Data path is a directory, expected a JSON file: {data_path}", file=sys.stderr)
        raise SystemExit(2)

    git_root = find_git_root(data_path.parent)
    if git_root and not allow_repo_data_path:
        print("🚫 Refusing to keep the activity log inside a git repo.", file=sys.stderr)
        print(f"   data_path: {data_path}", file=sys.stderr)
        print(f"   repo_root: {git_root}", file=sys.stderr)
        print(
            "   Fix: use ~/.config/pulselog/*.json, set PULSELOG_DATA, or pass --allow-repo-data-path",
            file=sys.stderr,
        )
        raise SystemExit(2)
