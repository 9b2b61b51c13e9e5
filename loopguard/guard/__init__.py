"""Guard for pending changes.

Deterministic, non-AI constraint checks over a single run's ChangeSet.
"""

from loopguard.guard.models import (
    ChangeSet,
    ConstraintPolicy,
    FileDelta,
    PolicyVerdict,
    ViolationCode,
)
from loopguard.guard.evaluator import (
    evaluate,
    explain,
    is_dependency_manifest,
    path_matches,
)

__all__ = [
    "ChangeSet",
    "ConstraintPolicy",
    "FileDelta",
    "PolicyVerdict",
    "ViolationCode",
    "evaluate",
    "explain",
    "is_dependency_manifest",
    "path_matches",
]
