"""
Story store operations.

Stories live in a single ordered JSON array (stories.json) in the state
directory. The store is loaded once at run start and flushed at most once,
at the run's success checkpoint.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from loopguard.lib.config import ConfigError
from loopguard.lib.validate import ValidationError, validate, validate_before_write
from loopguard.pm.models import Story
from loopguard.workflow.state_machine import StoryStatus, check_transition

logger = logging.getLogger(__name__)


def select_next(stories: list[Story]) -> Optional[Story]:
    """Return the first todo story in stored order, or None."""
    for story in stories:
        if story.status == StoryStatus.TODO:
            return story
    return None


def transition(story: Story, new_status: StoryStatus) -> Story:
    """Move a story to new_status in place.

    Only todo->doing and doing->done are allowed.

    Raises:
        InvalidTransition: For any other move (including self-transitions)
    """
    trigger = check_transition(story.status, new_status, story.id)
    logger.info(f"[STORY] {story.id}: {story.status.value} -> {new_status.value} ({trigger})")
    story.status = new_status
    return story


def find_story(stories: list[Story], story_id: str) -> Optional[Story]:
    """Find a story by id."""
    for story in stories:
        if story.id == story_id:
            return story
    return None


def count_by_status(stories: list[Story]) -> dict[str, int]:
    """Count stories per status, every status present."""
    counts = {status.value: 0 for status in StoryStatus}
    for story in stories:
        counts[story.status.value] += 1
    return counts


def stories_from_data(data: list) -> list[Story]:
    """Validate a parsed stories document and build Story objects.

    Raises:
        ConfigError: On schema failure or duplicate ids
    """
    try:
        validate(data, "stories")
    except ValidationError as e:
        raise ConfigError("stories", str(e)) from None

    stories = [Story.from_dict(item) for item in data]

    seen: set[str] = set()
    for story in stories:
        if story.id in seen:
            raise ConfigError("stories", f"Duplicate story id: {story.id}")
        seen.add(story.id)

    return stories


def load_stories(path: Path) -> list[Story]:
    """Load stories.json.

    Raises:
        ConfigError: If the file is missing, not JSON, or fails validation
    """
    if not path.exists():
        raise ConfigError("stories", f"Required document not found: {path}")

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError("stories", f"Invalid JSON in {path}: {e}") from None

    return stories_from_data(data)


def save_stories(path: Path, stories: list[Story]) -> None:
    """Validate and write stories.json, preserving order."""
    data = [story.to_dict() for story in stories]
    validate_before_write(data, "stories", path)
    path.write_text(json.dumps(data, indent=2) + "\n")
