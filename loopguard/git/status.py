"""Git status operations."""

from pathlib import Path

from loopguard.git.runner import run_git, run_git_checked


def has_uncommitted_changes(worktree: Path) -> bool:
    """Check if worktree has any uncommitted changes (staged, unstaged, or untracked)."""
    result = run_git(["status", "--porcelain"], worktree)
    return bool(result.stdout.strip())


def has_staged_changes(worktree: Path) -> bool:
    """Check if anything is staged for commit."""
    result = run_git(["diff", "--cached", "--quiet"], worktree)
    # exit 0 = nothing staged, exit 1 = staged changes
    return result.returncode == 1


def get_untracked_files(worktree: Path) -> list[str]:
    """Get list of untracked files (respecting .gitignore).

    Uses -z for null-separated output to handle filenames with spaces/special chars.

    Raises:
        GitError: If git fails (e.g., not a repo)
    """
    result = run_git_checked(["ls-files", "--others", "--exclude-standard", "-z"], worktree)
    return [f for f in result.stdout.split("\0") if f]


def get_head_sha(worktree: Path) -> str | None:
    """Get the SHA of HEAD, or None for an unborn branch."""
    result = run_git(["rev-parse", "--verify", "HEAD"], worktree)
    if result.success:
        return result.stdout.strip()
    return None


def get_git_dir(worktree: Path) -> Path:
    """Absolute path of the worktree's git directory.

    Raises:
        GitError: If worktree is not inside a git repository
    """
    result = run_git_checked(["rev-parse", "--absolute-git-dir"], worktree)
    return Path(result.stdout.strip())
