"""Git-backed workspace used by the loop controller.

Checks the worktree is clean, takes the pre-delegation snapshot, computes
the ChangeSet afterwards and commits/pushes either everything (success) or
a chosen subset of paths (failure bookkeeping).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from loopguard.git.commit import CommitError, commit_staged, reset_worktree, stage_all, stage_files, unstage_all
from loopguard.git.diff import collect_changeset
from loopguard.git.remote import has_remote, push
from loopguard.git.status import get_head_sha, has_uncommitted_changes
from loopguard.guard.models import ChangeSet

logger = logging.getLogger(__name__)

# git's well-known empty tree, used as the base of an unborn branch
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


@dataclass
class CommitOutcome:
    committed: bool
    pushed: bool = False


class GitWorkspace:
    def __init__(self, worktree: Path, push_after_commit: bool = True):
        self.worktree = worktree
        self.push_after_commit = push_after_commit

    def is_clean(self) -> bool:
        """True when there is nothing staged, modified or untracked."""
        return not has_uncommitted_changes(self.worktree)

    def snapshot(self) -> str:
        """Return a base ref for the later diff."""
        return get_head_sha(self.worktree) or EMPTY_TREE_SHA

    def collect_changes(self, base: str) -> ChangeSet:
        return collect_changeset(self.worktree, base)

    def commit_and_push(self, paths: Optional[Sequence[Path]], message: str) -> CommitOutcome:
        """Stage paths (or everything when None), commit and push.

        "Nothing to commit" is a benign no-op.

        Raises:
            CommitError: If staging, committing or pushing fails
        """
        if paths is None:
            staged = stage_all(self.worktree)
        else:
            # Only the given paths may end up in this commit
            unstage_all(self.worktree)
            staged = stage_files(self.worktree, [str(p) for p in paths])
        if not staged.success:
            raise CommitError(f"git add failed: {staged.stderr.strip()}")

        committed = commit_staged(self.worktree, message)
        if not committed:
            return CommitOutcome(committed=False)

        if not self.push_after_commit or not has_remote(self.worktree):
            logger.debug("[COMMIT] push skipped")
            return CommitOutcome(committed=True)

        result = push(self.worktree)
        if not result.success:
            raise CommitError(f"git push failed: {result.stderr.strip()}")
        logger.info("[COMMIT] pushed")
        return CommitOutcome(committed=True, pushed=True)

    def discard_changes(self) -> bool:
        """Throw away uncommitted working-tree changes."""
        ok = reset_worktree(self.worktree)
        if not ok:
            logger.warning(f"Failed to fully reset worktree {self.worktree}")
        return ok
