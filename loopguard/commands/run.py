"""
loopguard run - Execute exactly one governed loop iteration.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from loopguard.agents.command import CommandAgent
from loopguard.git.commit import CommitError
from loopguard.git.runner import GitError
from loopguard.git.status import get_git_dir
from loopguard.git.workspace import GitWorkspace
from loopguard.lib.config import ConfigError, load_loop_profile
from loopguard.lib.constants import LOCK_FILE, RUN_EXIT_COMMIT, RUN_EXIT_CONFIG
from loopguard.notifications import notify_failed, notify_paused
from loopguard.runner.locking import LockTimeout, run_lock
from loopguard.runner.state_store import FileStateStore
from loopguard.workflow.controller import LoopController, RunOutcome, RunResult

logger = logging.getLogger(__name__)


def default_run_ref() -> str:
    """Timestamp run reference for local invocations."""
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def build_controller(args, state_dir: Path, repo: Path) -> LoopController:
    """Wire the file store, command agent and git workspace together.

    Raises:
        ConfigError: If loop.env is missing or invalid
    """
    store = FileStateStore(state_dir)
    profile = load_loop_profile(store.paths.profile)
    agent = CommandAgent(
        command_template=profile.agent_command,
        worktree=repo,
        timeout=profile.agent_timeout,
        test_command=profile.test_command,
        test_timeout=profile.test_timeout,
        log_file=Path(args.agent_log) if args.agent_log else None,
    )
    workspace = GitWorkspace(repo, push_after_commit=profile.push_after_commit and not args.no_push)
    return LoopController(
        store,
        agent,
        workspace,
        commit_prefix=profile.commit_prefix,
        discard_failed_changes=not args.keep_failed_changes,
        verbose=args.verbose,
    )


def print_result(result: RunResult) -> None:
    if result.outcome == RunOutcome.PAUSED:
        print("PAUSED: loop is paused; run 'loopguard resume' after investigating")
        print(f"  Consecutive failures: {result.failure_state.consecutive_failures}")
        if result.failure_state.last_failure_summary:
            print(f"  Last failure: {result.failure_state.last_failure_summary}")
        return

    if result.outcome == RunOutcome.NO_WORK:
        print("DONE: no todo stories remaining")
        return

    if result.outcome == RunOutcome.SUCCEEDED:
        print(f"OK: {result.story_id} done ({result.summary})")
        if not result.committed:
            print("  Nothing to commit")
        return

    print(f"FAILED: {result.story_id}: {result.summary}")
    print(f"  Consecutive failures: {result.failure_state.consecutive_failures}"
          f"/{result.contract.max_failure_retries}")
    if result.paused_now:
        print("  Failure limit reached: loop is now PAUSED")


def cmd_run(args, state_dir: Path, repo: Path) -> int:
    run_ref = args.run_ref or default_run_ref()
    logger.debug(f"[RUN] {run_ref}: state dir {state_dir}, repo {repo}")

    try:
        lock_file = get_git_dir(repo) / LOCK_FILE
    except GitError as e:
        print(f"ERROR: {repo} is not a git repository: {e}", file=sys.stderr)
        return RUN_EXIT_CONFIG

    try:
        with run_lock(lock_file, timeout=args.lock_timeout):
            controller = build_controller(args, state_dir, repo)
            result = controller.run_once(run_ref)
    except LockTimeout as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("  Another run is in progress for this repository", file=sys.stderr)
        return RUN_EXIT_CONFIG
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return RUN_EXIT_CONFIG
    except CommitError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("  State documents were written but not committed", file=sys.stderr)
        return RUN_EXIT_COMMIT

    print_result(result)

    if result.paused_now:
        notify_paused(result.failure_state.consecutive_failures, result.summary)
    elif result.outcome == RunOutcome.FAILED:
        notify_failed(result.story_id or "?", result.summary)

    return result.exit_code
