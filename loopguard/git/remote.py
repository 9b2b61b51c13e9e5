"""Git remote operations."""

from pathlib import Path

from loopguard.git.runner import run_git, GitResult


def has_remote(repo: Path) -> bool:
    """Check if repo has any remotes configured."""
    result = run_git(["remote"], repo)
    return bool(result.stdout.strip())


def push(worktree: Path) -> GitResult:
    """Push the current branch to its upstream."""
    return run_git(["push"], worktree, timeout=60)
