#!/usr/bin/env python3
"""loopguard CLI entrypoint."""

import sys
import logging
import argparse
from pathlib import Path

from loopguard.lib.constants import DEFAULT_STATE_DIR
from loopguard.commands import guard as cmd_guard_module
from loopguard.commands import run as cmd_run_module
from loopguard.commands import status as cmd_status_module
from loopguard.commands import resume as cmd_resume_module


def get_dirs(args):
    """Resolve the repository and state directory from global options."""
    repo = Path(args.repo).resolve()
    state_dir = Path(args.state_dir)
    if not state_dir.is_absolute():
        state_dir = repo / state_dir
    return state_dir, repo


def cmd_guard(args):
    state_dir, repo = get_dirs(args)
    return cmd_guard_module.cmd_guard(args, state_dir, repo)


def cmd_run(args):
    state_dir, repo = get_dirs(args)
    return cmd_run_module.cmd_run(args, state_dir, repo)


def cmd_status(args):
    state_dir, repo = get_dirs(args)
    return cmd_status_module.cmd_status(args, state_dir, repo)


def cmd_resume(args):
    state_dir, repo = get_dirs(args)
    return cmd_resume_module.cmd_resume(args, state_dir, repo)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='loopguard', description='Governed single-iteration agent loop')
    parser.add_argument('--repo', '-C', default='.', help='Repository root (default: current directory)')
    parser.add_argument('--state-dir', default=DEFAULT_STATE_DIR,
                        help=f'State directory, relative to the repo (default: {DEFAULT_STATE_DIR})')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging and suppressed guard checks')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # loopguard guard
    p_guard = subparsers.add_parser('guard', help='Check pending changes against guardrails')
    p_guard.add_argument('--policy', help='Policy YAML (default: <state-dir>/guardrails.yaml)')
    p_guard.add_argument('--base', default='HEAD', help='Diff base (default: HEAD)')
    p_guard.set_defaults(func=cmd_guard)

    # loopguard run
    p_run = subparsers.add_parser('run', help='Run exactly one loop iteration')
    p_run.add_argument('--run-ref', help='Run reference recorded on failure (default: timestamp)')
    p_run.add_argument('--keep-failed-changes', action='store_true',
                       help='Leave a failed attempt\'s changes in the worktree for inspection '
                            '(the next run refuses to start until they are cleaned up)')
    p_run.add_argument('--no-push', action='store_true', help='Commit but do not push')
    p_run.add_argument('--agent-log', help='Append agent output to this file')
    p_run.add_argument('--lock-timeout', type=int, default=0,
                       help='Seconds to wait for a concurrent run (default: fail immediately)')
    p_run.set_defaults(func=cmd_run)

    # loopguard status
    p_status = subparsers.add_parser('status', help='Show loop and story status')
    p_status.add_argument('story', nargs='?', help='Show a single story')
    p_status.set_defaults(func=cmd_status)

    # loopguard resume
    p_resume = subparsers.add_parser('resume', help='Clear the pause flag')
    p_resume.add_argument('--reset-failures', action='store_true', help='Also reset the failure counter')
    p_resume.set_defaults(func=cmd_resume)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
