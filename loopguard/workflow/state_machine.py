"""Story lifecycle with explicit transitions.

Stories only move forward: todo -> doing -> done. Any other move raises
InvalidTransition. There is no implicit rollback of a story stuck in doing.

Usage:
    from loopguard.workflow.state_machine import StoryStatus, check_transition

    check_transition(story.status, StoryStatus.DOING, story.id)
"""

from enum import Enum


class StoryStatus(Enum):
    """All valid story statuses."""

    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class InvalidTransition(Exception):
    """Raised when attempting an invalid story status transition."""

    def __init__(self, from_state: StoryStatus, to_state: StoryStatus, story_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.story_id = story_id
        super().__init__(
            f"Invalid transition: {from_state.value} -> {to_state.value}"
            + (f" (story: {story_id})" if story_id else "")
        )


# Transitions defined as (trigger, source, dest)
TRANSITIONS = [
    {"trigger": "start", "source": StoryStatus.TODO, "dest": StoryStatus.DOING},
    {"trigger": "finish", "source": StoryStatus.DOING, "dest": StoryStatus.DONE},
]


def _build_trigger_lookup() -> dict[tuple[StoryStatus, StoryStatus], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[StoryStatus, StoryStatus], str] = {}
    for t in TRANSITIONS:
        key = (t["source"], t["dest"])
        if key not in lookup:
            lookup[key] = t["trigger"]
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


def can_transition(from_state: StoryStatus, to_state: StoryStatus) -> bool:
    """Check if a story may move from from_state to to_state."""
    return (from_state, to_state) in TRIGGER_FOR


def check_transition(from_state: StoryStatus, to_state: StoryStatus, story_id: str = "") -> str:
    """Validate a transition and return its trigger name.

    Raises:
        InvalidTransition: If the move is not todo->doing or doing->done
    """
    if not can_transition(from_state, to_state):
        raise InvalidTransition(from_state, to_state, story_id)
    return TRIGGER_FOR[(from_state, to_state)]
