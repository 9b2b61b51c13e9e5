"""
Data models for PM module.
"""

from dataclasses import dataclass, field
from typing import Optional

from loopguard.workflow.state_machine import StoryStatus


@dataclass
class Story:
    """One unit of work with acceptance criteria.

    Stories are authored by humans and only ever advanced by loopguard,
    never deleted.
    """
    id: str                                    # STORY-0001
    title: str
    status: StoryStatus                        # todo, doing, done
    acceptance: list[str] = field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Story":
        return cls(
            id=data["id"],
            title=data["title"],
            status=StoryStatus(data["status"]),
            acceptance=list(data.get("acceptance", [])),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "acceptance": list(self.acceptance),
        }
        if self.notes is not None:
            data["notes"] = self.notes
        return data
