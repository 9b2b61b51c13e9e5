"""
loopguard status - Show loop health and story progress.
"""

import sys
from pathlib import Path

from loopguard.git.status import has_uncommitted_changes
from loopguard.lib.config import ConfigError
from loopguard.lib.constants import RUN_EXIT_CONFIG, RUN_EXIT_FAILED
from loopguard.pm.stories import count_by_status, find_story, select_next
from loopguard.runner.state_store import FileStateStore


def cmd_status(args, state_dir: Path, repo: Path) -> int:
    store = FileStateStore(state_dir)

    try:
        contract = store.load_contract()
        stories = store.load_stories()
        failures = store.load_failure_state()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return RUN_EXIT_CONFIG

    if args.story:
        story = find_story(stories, args.story)
        if story is None:
            print(f"ERROR: Story '{args.story}' not found", file=sys.stderr)
            return RUN_EXIT_FAILED
        print(f"{story.id}: {story.title}")
        print(f"  Status: {story.status.value}")
        for item in story.acceptance:
            print(f"  - {item}")
        if story.notes:
            print(f"  Notes: {story.notes}")
        return 0

    state = "PAUSED" if contract.paused else "active"
    print(f"Loop: {state}")
    print(f"Failures: {failures.consecutive_failures}/{contract.max_failure_retries}")
    if failures.last_failure_summary:
        print(f"  Last failure: {failures.last_failure_summary}")
        print(f"  Run: {failures.last_failure_run_ref or '-'} at {failures.last_failure_at or '-'}")

    counts = count_by_status(stories)
    print(f"Stories: {counts['done']} done, {counts['doing']} doing, {counts['todo']} todo")

    next_story = select_next(stories)
    if next_story:
        print(f"Next: {next_story.id} - {next_story.title}")
    else:
        print("Next: (none)")

    if has_uncommitted_changes(repo):
        print("Worktree: uncommitted changes present")
    return 0
