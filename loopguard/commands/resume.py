"""
loopguard resume - Clear the pause flag after a human has investigated.

This is the only way a paused loop becomes active again. The failure
counter is kept unless --reset-failures is given; a kept counter that is
still at the limit pauses the loop again on the next failure.
"""

import logging
import sys
from dataclasses import replace
from pathlib import Path

from loopguard.lib.config import ConfigError
from loopguard.lib.constants import RUN_EXIT_CONFIG
from loopguard.runner.state_store import FileStateStore
from loopguard.workflow.failures import record_success

logger = logging.getLogger(__name__)


def cmd_resume(args, state_dir: Path, repo: Path) -> int:
    store = FileStateStore(state_dir)

    try:
        contract = store.load_contract()
        failures = store.load_failure_state()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return RUN_EXIT_CONFIG

    if not contract.paused and not args.reset_failures:
        print("Loop is not paused, nothing to do")
        return 0

    if contract.paused:
        store.save_contract(replace(contract, paused=False))
        logger.info("[RESUME] PAUSED=false")
        print("Loop resumed")

    if args.reset_failures:
        store.save_failure_state(record_success(failures))
        logger.info(f"[RESUME] consecutive failures reset (was {failures.consecutive_failures})")
        print(f"Failure counter reset (was {failures.consecutive_failures})")
    elif failures.consecutive_failures >= contract.max_failure_retries:
        print(f"WARNING: {failures.consecutive_failures} consecutive failures recorded; "
              "the next failure pauses the loop again (use --reset-failures to clear)")
    return 0
