"""Git diff operations.

Builds the ChangeSet the guard evaluates: tracked changes against a base ref
(working tree included) plus untracked files, which count as fully added.
"""

import logging
from pathlib import Path

from loopguard.git.runner import run_git_checked
from loopguard.git.status import get_untracked_files
from loopguard.guard.models import ChangeSet, FileDelta

logger = logging.getLogger(__name__)


def parse_numstat(output: str) -> dict[str, FileDelta]:
    """Parse `git diff --numstat -z --no-renames` output.

    Each record is "added<TAB>deleted<TAB>path" terminated by NUL. Binary files
    report "-" for both counts and are counted as zero lines.
    """
    deltas: dict[str, FileDelta] = {}
    for record in output.split("\0"):
        if not record.strip():
            continue
        parts = record.split("\t", 2)
        if len(parts) != 3:
            logger.warning(f"Unparseable numstat record ignored: {record!r}")
            continue
        added, deleted, path = parts
        path = path.strip("\n")
        deltas[path] = FileDelta(
            added=int(added) if added.isdigit() else 0,
            deleted=int(deleted) if deleted.isdigit() else 0,
        )
    return deltas


def count_file_lines(path: Path) -> int:
    """Count lines of a new file. Binary files count as zero."""
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning(f"Could not read untracked file {path}: {e}")
        return 0
    if not data or b"\0" in data:
        return 0
    lines = data.count(b"\n")
    if not data.endswith(b"\n"):
        lines += 1
    return lines


def get_numstat(worktree: Path, base: str = "HEAD") -> dict[str, FileDelta]:
    """Per-file line deltas of the working tree against base."""
    result = run_git_checked(["diff", "--numstat", "-z", "--no-renames", base], worktree)
    return parse_numstat(result.stdout)


def collect_changeset(worktree: Path, base: str = "HEAD") -> ChangeSet:
    """Compute the pending ChangeSet of a worktree.

    Args:
        worktree: Repository working tree
        base: Ref or SHA to diff against (the pre-delegation snapshot)

    Raises:
        GitError: If git cannot produce the diff
    """
    deltas = get_numstat(worktree, base)
    for rel_path in get_untracked_files(worktree):
        if rel_path not in deltas:
            deltas[rel_path] = FileDelta(added=count_file_lines(worktree / rel_path), deleted=0)

    changes = ChangeSet(files=frozenset(deltas), per_file=deltas)
    logger.info(f"[GUARD] change set: {changes.file_count} files, {changes.total_lines} lines vs {base}")
    return changes

