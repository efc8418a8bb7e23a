from __future__ import annotations

from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1]
REPO_ROOT = APP_ROOT.parent


def app_root() -> Path:
    return APP_ROOT


def resolve_repo_path(path_value: str | Path) -> Path:
    """Absolute paths pass through; relative ones are tried against the CWD, then the repository root."""
    path = Path(path_value).expanduser()
    if path.is_absolute():
        return path
    if path.exists():
        return path.resolve()
    candidate = REPO_ROOT / path
    return candidate.resolve() if candidate.exists() else path.resolve()
