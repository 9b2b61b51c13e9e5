"""Git commit operations."""

import logging
from pathlib import Path

from loopguard.git.runner import run_git, GitResult
from loopguard.git.status import has_staged_changes

logger = logging.getLogger(__name__)


class CommitError(Exception):
    """Committing or pushing failed for a reason other than an empty index."""


def stage_files(worktree: Path, files: list[str]) -> GitResult:
    """Stage specific files (tracked or new)."""
    return run_git(["add", "-A", "--"] + files, worktree)


def unstage_all(worktree: Path) -> GitResult:
    """Unstage everything, keeping working-tree changes."""
    return run_git(["reset", "-q"], worktree)


def stage_all(worktree: Path) -> GitResult:
    """Stage all changes (new, modified, deleted)."""
    return run_git(["add", "-A"], worktree)


def commit(worktree: Path, message: str) -> GitResult:
    """Create a commit with the given message."""
    return run_git(["commit", "-m", message], worktree)


def commit_staged(worktree: Path, message: str) -> bool:
    """Commit whatever is staged.

    Returns:
        True if a commit was created, False if nothing was staged (benign no-op)

    Raises:
        CommitError: If git refused to commit
    """
    if not has_staged_changes(worktree):
        logger.info("[COMMIT] nothing to commit, skipping")
        return False

    result = commit(worktree, message)
    if not result.success:
        raise CommitError(f"git commit failed: {result.stderr.strip() or result.stdout.strip()}")
    logger.info(f"[COMMIT] {message}")
    return True


def reset_worktree(worktree: Path) -> bool:
    """
    Reset uncommitted changes in worktree.

    Discards all staged and unstaged changes, removes untracked files.
    Returns True if successful.
    """
    unstage = unstage_all(worktree)
    if not unstage.success:
        return False

    checkout = run_git(["checkout", "--", "."], worktree)
    if not checkout.success:
        return False

    clean = run_git(["clean", "-fd"], worktree)
    return clean.success
