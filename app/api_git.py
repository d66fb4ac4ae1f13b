"""Git helpers that version each user's tables."""

from __future__ import annotations

import logging
from pathlib import Path

from dulwich import porcelain
from dulwich.repo import Repo

from app.api_utils import _atomic_write
from app.errors import ApiError

logger = logging.getLogger(__name__)

COMMIT_AUTHOR = b"Taskpilot <taskpilot@localhost>"


def _ensure_git_repo(data_root: Path) -> Repo:
    git_dir = data_root / ".git"
    try:
        if git_dir.exists():
            return Repo(str(data_root))
        return porcelain.init(str(data_root))
    except Exception as exc:
        logger.error("git init failed for %s: %s", data_root, exc)
        raise ApiError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(data_root)},
            status_code=500,
        ) from exc


def _commit_table_change(repo: Repo, relative_path: Path, operation: str) -> str:
    repo.get_worktree().stage([relative_path.as_posix()])
    commit_message = f"{operation}: {relative_path.as_posix()}"
    commit_sha = porcelain.commit(
        repo,
        message=commit_message,
        author=COMMIT_AUTHOR,
        committer=COMMIT_AUTHOR,
    )
    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)


def _rollback_table_change(
    repo: Repo | None,
    target_path: Path,
    relative_path: Path,
    original_content: str | None,
) -> None:
    """Put the table back the way it was before a failed commit."""
    if original_content is None:
        try:
            if target_path.exists():
                target_path.unlink()
        except OSError:
            pass
    else:
        _atomic_write(target_path, original_content)
    if repo is None:
        return
    try:
        repo.get_worktree().stage([relative_path.as_posix()])
    except Exception as exc:
        logger.warning("could not restage %s after rollback: %s", relative_path, exc)
