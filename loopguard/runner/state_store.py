"""
File-backed state documents for one state directory.

The loop controller reads everything once at run start and writes through
this store at a single checkpoint per run. Which documents get written (and
so which paths get committed) depends on the run's outcome.
"""

import logging
from pathlib import Path

from loopguard.guard.models import ConstraintPolicy
from loopguard.lib.config import (
    AgentContract,
    StatePaths,
    load_agent_contract,
    load_policy,
    save_agent_contract,
)
from loopguard.pm.models import Story
from loopguard.pm.stories import load_stories, save_stories
from loopguard.workflow.failures import FailureState, load_failure_state, save_failure_state

logger = logging.getLogger(__name__)


class FileStateStore:
    def __init__(self, state_dir: Path):
        self.paths = StatePaths(state_dir)

    def load_contract(self) -> AgentContract:
        return load_agent_contract(self.paths.agent_contract)

    def load_policy(self) -> ConstraintPolicy:
        return load_policy(self.paths.guardrails)

    def load_stories(self) -> list[Story]:
        return load_stories(self.paths.stories)

    def load_failure_state(self) -> FailureState:
        return load_failure_state(self.paths.failure_state)

    def save_contract(self, contract: AgentContract) -> Path:
        save_agent_contract(self.paths.agent_contract, contract)
        logger.debug(f"Wrote {self.paths.agent_contract}")
        return self.paths.agent_contract

    def save_stories(self, stories: list[Story]) -> Path:
        save_stories(self.paths.stories, stories)
        logger.debug(f"Wrote {self.paths.stories}")
        return self.paths.stories

    def save_failure_state(self, state: FailureState) -> Path:
        save_failure_state(self.paths.failure_state, state)
        logger.debug(f"Wrote {self.paths.failure_state}")
        return self.paths.failure_state
