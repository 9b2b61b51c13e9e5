"""Git command runner with timeout handling."""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class GitError(Exception):
    """A git command needed by loopguard failed."""

    def __init__(self, args: list[str], result: "GitResult"):
        self.command = args
        self.result = result
        detail = result.stderr.strip() or f"exit {result.returncode}"
        super().__init__(f"git {' '.join(args)}: {detail}")


@dataclass
class GitResult:
    """Result of a git command."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def run_git(
    args: list[str],
    cwd: Path,
    timeout: int = DEFAULT_TIMEOUT,
) -> GitResult:
    """
    Run a git command with timeout handling.

    Never prompts for credentials: a push that needs them fails instead
    of hanging the run.

    Args:
        args: Git command arguments (e.g., ["diff", "--numstat"])
        cwd: Working directory for the command
        timeout: Timeout in seconds

    Returns:
        GitResult with returncode, stdout, stderr, and timed_out flag
    """
    cmd = ["git", "-C", str(cwd)] + args
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    logger.debug(f"[GIT] {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
        return GitResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    except subprocess.TimeoutExpired:
        return GitResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )


def run_git_checked(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """Run a git command and raise GitError unless it succeeded."""
    result = run_git(args, cwd, timeout=timeout)
    if not result.success:
        raise GitError(args, result)
    return result
