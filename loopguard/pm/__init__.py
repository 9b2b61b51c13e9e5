"""
PM (Project Management) module for loopguard.

Holds the ordered story collection, picks exactly one unit of work per run
and advances its status.
"""

from loopguard.pm.models import Story
from loopguard.pm.stories import (
    select_next,
    transition,
    find_story,
    count_by_status,
    load_stories,
    save_stories,
)

__all__ = [
    "Story",
    "select_next",
    "transition",
    "find_story",
    "count_by_status",
    "load_stories",
    "save_stories",
]
