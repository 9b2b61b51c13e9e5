"""
loopguard guard - Check the pending working-tree change against the policy.

Exit status is the machine-readable contract:
    0 pass, 2 TooManyFiles, 3 DeniedPathModified, 4 PathOutsideAllowlist,
    5 DependencyChangeForbidden, 6 TooManyLinesChanged
"""

import logging
import sys
from pathlib import Path

from loopguard.git.diff import collect_changeset
from loopguard.git.runner import GitError
from loopguard.guard.evaluator import evaluate, explain
from loopguard.lib.config import ConfigError, StatePaths, load_policy
from loopguard.lib.constants import RUN_EXIT_FAILED

logger = logging.getLogger(__name__)


def cmd_guard(args, state_dir: Path, repo: Path) -> int:
    policy_path = Path(args.policy) if args.policy else StatePaths(state_dir).guardrails

    try:
        policy = load_policy(policy_path)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        # 2-6 are reserved for verdicts
        return RUN_EXIT_FAILED

    try:
        changes = collect_changeset(repo, args.base)
    except GitError as e:
        print(f"ERROR: Could not compute change set: {e}", file=sys.stderr)
        return RUN_EXIT_FAILED

    verdict = evaluate(changes, policy)

    if args.verbose:
        for extra in explain(changes, policy)[1:]:
            logger.info(f"[GUARD] suppressed {extra.code_name}: {extra.message}")

    if verdict.passed:
        print(f"PASS: {verdict.message}")
    else:
        print(f"FAIL [{verdict.code_name}]: {verdict.message}")
    return verdict.exit_code
