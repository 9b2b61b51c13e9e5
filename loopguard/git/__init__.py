"""Git operations for loopguard.

This module provides clean interfaces for git operations.
New code should use these functions instead of direct subprocess calls.

Return type conventions:
- Functions returning GitResult: Caller must check .success before using output.
  Examples: stage_files(), commit(), push()
- Functions returning bool: True on success/condition met, False otherwise.
  Examples: has_uncommitted_changes(), has_staged_changes(), has_remote()
- Functions that must succeed for the run to make sense raise GitError.
  Examples: collect_changeset(), get_untracked_files(), get_git_dir()
"""

from loopguard.git.runner import GitError, GitResult, run_git
from loopguard.git.status import (
    has_uncommitted_changes,
    has_staged_changes,
    get_untracked_files,
    get_head_sha,
    get_git_dir,
)
from loopguard.git.diff import (
    collect_changeset,
    parse_numstat,
)
from loopguard.git.commit import (
    CommitError,
    stage_files,
    stage_all,
    commit,
    commit_staged,
    reset_worktree,
)
from loopguard.git.remote import (
    has_remote,
    push,
)
from loopguard.git.workspace import CommitOutcome, GitWorkspace

__all__ = [
    # runner
    "GitError",
    "GitResult",
    "run_git",
    # status
    "has_uncommitted_changes",
    "has_staged_changes",
    "get_untracked_files",
    "get_head_sha",
    "get_git_dir",
    # diff
    "collect_changeset",
    "parse_numstat",
    # commit
    "CommitError",
    "stage_files",
    "stage_all",
    "commit",
    "commit_staged",
    "reset_worktree",
    # remote
    "has_remote",
    "push",
    # workspace
    "CommitOutcome",
    "GitWorkspace",
]
