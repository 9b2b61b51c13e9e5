"""
Data models for the guard.

ChangeSet describes one run's pending modification, ConstraintPolicy the
configured bounds, PolicyVerdict the single-violation outcome.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from loopguard.lib.constants import (
    EXIT_DENIED_PATH,
    EXIT_DEPENDENCY_CHANGE,
    EXIT_OUTSIDE_ALLOWLIST,
    EXIT_PASS,
    EXIT_TOO_MANY_FILES,
    EXIT_TOO_MANY_LINES,
)


class ViolationCode(Enum):
    """Guard violations, in evaluation order."""

    TOO_MANY_FILES = "TooManyFiles"
    DENIED_PATH_MODIFIED = "DeniedPathModified"
    PATH_OUTSIDE_ALLOWLIST = "PathOutsideAllowlist"
    DEPENDENCY_CHANGE_FORBIDDEN = "DependencyChangeForbidden"
    TOO_MANY_LINES_CHANGED = "TooManyLinesChanged"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    ViolationCode.TOO_MANY_FILES: EXIT_TOO_MANY_FILES,
    ViolationCode.DENIED_PATH_MODIFIED: EXIT_DENIED_PATH,
    ViolationCode.PATH_OUTSIDE_ALLOWLIST: EXIT_OUTSIDE_ALLOWLIST,
    ViolationCode.DEPENDENCY_CHANGE_FORBIDDEN: EXIT_DEPENDENCY_CHANGE,
    ViolationCode.TOO_MANY_LINES_CHANGED: EXIT_TOO_MANY_LINES,
}


@dataclass(frozen=True)
class FileDelta:
    """Line counts for a single changed file."""
    added: int = 0
    deleted: int = 0

    def __post_init__(self):
        if self.added < 0 or self.deleted < 0:
            raise ValueError(f"Line counts must be non-negative (added={self.added}, deleted={self.deleted})")

    @property
    def total(self) -> int:
        return self.added + self.deleted


@dataclass(frozen=True)
class ChangeSet:
    """Files and line deltas of one run's pending change.

    Every path in per_file is also in files. A file listed without a delta
    (e.g. a mode-only change) counts as zero lines.
    """
    files: frozenset[str] = frozenset()
    per_file: Mapping[str, FileDelta] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "files", frozenset(self.files) | frozenset(self.per_file))
        object.__setattr__(self, "per_file", MappingProxyType(dict(self.per_file)))

    @classmethod
    def from_deltas(cls, deltas: Mapping[str, tuple[int, int]]) -> "ChangeSet":
        """Build a ChangeSet from {path: (added, deleted)}."""
        return cls(
            files=frozenset(deltas),
            per_file={path: FileDelta(added, deleted) for path, (added, deleted) in deltas.items()},
        )

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def total_lines(self) -> int:
        return sum(delta.total for delta in self.per_file.values())

    def sorted_files(self) -> list[str]:
        return sorted(self.files)


@dataclass(frozen=True)
class ConstraintPolicy:
    """Configured bounds a ChangeSet must satisfy.

    Path entries ending in "/" are prefixes; all others are exact paths.
    Deny always wins over allow. Empty allow_paths allows everything.
    """
    max_files_changed: int
    max_lines_changed: int
    allow_paths: tuple[str, ...] = ()
    deny_paths: tuple[str, ...] = ()
    allow_dependency_changes: bool = False

    def __post_init__(self):
        if self.max_files_changed < 0 or self.max_lines_changed < 0:
            raise ValueError("Policy limits must be non-negative")
        # Ordered sets: keep first occurrence
        object.__setattr__(self, "allow_paths", tuple(dict.fromkeys(self.allow_paths)))
        object.__setattr__(self, "deny_paths", tuple(dict.fromkeys(self.deny_paths)))


@dataclass(frozen=True)
class PolicyVerdict:
    """Outcome of one guard evaluation. At most one violation."""
    passed: bool
    message: str
    violation_code: Optional[ViolationCode] = None

    @property
    def exit_code(self) -> int:
        if self.passed or self.violation_code is None:
            return EXIT_PASS
        return self.violation_code.exit_code

    @property
    def code_name(self) -> str:
        return self.violation_code.value if self.violation_code else "Passed"
