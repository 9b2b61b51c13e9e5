"""
Guard evaluation for pending changes.

evaluate() is a pure function of (ChangeSet, ConstraintPolicy). Checks run in a
fixed order and the first violated check decides the verdict; later checks are
not evaluated. Callers key behavior off that single discriminant, so evaluate()
never reports more than one violation.

explain() runs every check without short-circuiting. It exists for verbose
logging only and does not change what evaluate() returns.

Usage:
    from loopguard.guard.evaluator import evaluate

    verdict = evaluate(changeset, policy)
    if not verdict.passed:
        sys.exit(verdict.exit_code)
"""

from pathlib import PurePosixPath
from typing import Callable, Optional

from loopguard.guard.models import ChangeSet, ConstraintPolicy, PolicyVerdict, ViolationCode
from loopguard.lib.constants import DEPENDENCY_MANIFESTS, REQUIREMENTS_PATTERN

__all__ = ["evaluate", "explain", "path_matches", "matches_any", "is_dependency_manifest", "CHECKS"]


def path_matches(path: str, entry: str) -> bool:
    """Match a changed path against one allow/deny entry.

    An entry ending in "/" is a prefix match; any other entry must be exact.
    "src/" matches "src/a.ts" and "src/b/c.ts" but not "srcx/a.ts".
    """
    if entry.endswith("/"):
        return path.startswith(entry)
    return path == entry


def matches_any(path: str, entries: tuple[str, ...]) -> bool:
    return any(path_matches(path, entry) for entry in entries)


def is_dependency_manifest(path: str) -> bool:
    """Check if path is a recognised dependency manifest or lock file."""
    pure = PurePosixPath(path)
    if pure.name in DEPENDENCY_MANIFESTS:
        return True
    if REQUIREMENTS_PATTERN.match(pure.name):
        return True
    # requirements/base.txt style layouts
    return pure.parent.name == "requirements" and pure.suffix in (".txt", ".in")


def _format_paths(paths: list[str], limit: int = 10) -> str:
    shown = ", ".join(paths[:limit])
    if len(paths) > limit:
        shown += f" (+{len(paths) - limit} more)"
    return shown


# Each check returns a violation verdict, or None when it does not trigger.

def _check_file_count(changes: ChangeSet, policy: ConstraintPolicy) -> Optional[PolicyVerdict]:
    if changes.file_count > policy.max_files_changed:
        return PolicyVerdict(
            passed=False,
            violation_code=ViolationCode.TOO_MANY_FILES,
            message=f"Too many files changed: {changes.file_count} > {policy.max_files_changed}",
        )
    return None


def _check_deny_paths(changes: ChangeSet, policy: ConstraintPolicy) -> Optional[PolicyVerdict]:
    denied = [p for p in changes.sorted_files() if matches_any(p, policy.deny_paths)]
    if denied:
        return PolicyVerdict(
            passed=False,
            violation_code=ViolationCode.DENIED_PATH_MODIFIED,
            message=f"Denied paths modified: {_format_paths(denied)}",
        )
    return None


def _check_allow_paths(changes: ChangeSet, policy: ConstraintPolicy) -> Optional[PolicyVerdict]:
    # Empty allowlist means allow everything
    if not policy.allow_paths:
        return None
    outside = [p for p in changes.sorted_files() if not matches_any(p, policy.allow_paths)]
    if outside:
        return PolicyVerdict(
            passed=False,
            violation_code=ViolationCode.PATH_OUTSIDE_ALLOWLIST,
            message=f"Paths outside allowlist: {_format_paths(outside)}",
        )
    return None


def _check_dependencies(changes: ChangeSet, policy: ConstraintPolicy) -> Optional[PolicyVerdict]:
    if policy.allow_dependency_changes:
        return None
    manifests = [p for p in changes.sorted_files() if is_dependency_manifest(p)]
    if manifests:
        return PolicyVerdict(
            passed=False,
            violation_code=ViolationCode.DEPENDENCY_CHANGE_FORBIDDEN,
            message=f"Dependency changes are not allowed: {_format_paths(manifests)}",
        )
    return None


def _check_line_count(changes: ChangeSet, policy: ConstraintPolicy) -> Optional[PolicyVerdict]:
    total = changes.total_lines
    if total > policy.max_lines_changed:
        return PolicyVerdict(
            passed=False,
            violation_code=ViolationCode.TOO_MANY_LINES_CHANGED,
            message=f"Too many lines changed: {total} > {policy.max_lines_changed}",
        )
    return None


CheckFn = Callable[[ChangeSet, ConstraintPolicy], Optional[PolicyVerdict]]

# Evaluation order is part of the contract
CHECKS: list[tuple[ViolationCode, CheckFn]] = [
    (ViolationCode.TOO_MANY_FILES, _check_file_count),
    (ViolationCode.DENIED_PATH_MODIFIED, _check_deny_paths),
    (ViolationCode.PATH_OUTSIDE_ALLOWLIST, _check_allow_paths),
    (ViolationCode.DEPENDENCY_CHANGE_FORBIDDEN, _check_dependencies),
    (ViolationCode.TOO_MANY_LINES_CHANGED, _check_line_count),
]


def _passed(changes: ChangeSet) -> PolicyVerdict:
    return PolicyVerdict(
        passed=True,
        message=f"All guard checks passed ({changes.file_count} files, {changes.total_lines} lines)",
    )


def evaluate(changes: ChangeSet, policy: ConstraintPolicy) -> PolicyVerdict:
    """Render a single-violation verdict for a ChangeSet.

    Args:
        changes: The pending change to inspect
        policy: Configured bounds and path rules

    Returns:
        The first violated check's verdict, or a passing verdict
    """
    for _code, check in CHECKS:
        verdict = check(changes, policy)
        if verdict is not None:
            return verdict
    return _passed(changes)


def explain(changes: ChangeSet, policy: ConstraintPolicy) -> list[PolicyVerdict]:
    """Run every check without short-circuit.

    Returns all violations in evaluation order (empty list if none). The first
    element, when present, equals what evaluate() returns.
    """
    violations = []
    for _code, check in CHECKS:
        verdict = check(changes, policy)
        if verdict is not None:
            violations.append(verdict)
    return violations
