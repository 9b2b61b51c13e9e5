"""One governed loop iteration, driven by an explicit state machine.

Flow (states of LoopRun):
    idle -> paused                       contract is paused
    idle -> done                         no todo story left
    idle -> selecting                    first todo story marked doing
    selecting -> delegating              change agent invoked
    delegating -> evaluating             agent produced a change
    delegating -> recording_failure      agent failed
    evaluating -> committing             guard passed
    evaluating -> recording_failure      guard violation
    committing -> done                   story done, failures reset, commit all
    recording_failure -> done            failure counted, maybe pause, commit
                                         failure state (and contract) only

ConfigError from loading documents, or from a worktree that already has
uncommitted changes, propagates before anything is mutated. Every run starts
from a clean worktree, so its ChangeSet holds only the agent's change.

Agent failures and guard violations never propagate; they become one
failure-tracker increment. CommitError propagates after the checkpoint has
been written; in-memory state is not rolled back.

On failure the story is marked doing in memory (and reported that way) but
the stories document is not written, so on disk it rolls back to todo and the
next run retries it. The agent's uncommitted change is discarded after the
failure checkpoint unless discard_failed_changes is off; nothing from a
failed attempt is ever committed.

Usage:
    controller = LoopController(FileStateStore(state_dir), agent, GitWorkspace(repo))
    result = controller.run_once(run_ref="ci-1234")
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence

from transitions import Machine

from loopguard.agents.command import AgentResult, ChangeRequest
from loopguard.git.workspace import CommitOutcome
from loopguard.guard.evaluator import evaluate, explain
from loopguard.guard.models import ChangeSet, ConstraintPolicy, PolicyVerdict
from loopguard.lib.config import AgentContract, ConfigError
from loopguard.lib.constants import RUN_EXIT_FAILED, RUN_EXIT_OK, RUN_EXIT_PAUSED
from loopguard.pm.models import Story
from loopguard.pm.stories import select_next, transition
from loopguard.workflow.failures import FailureState, record_failure, record_success, should_pause
from loopguard.workflow.state_machine import StoryStatus

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    def load_contract(self) -> AgentContract: ...
    def load_policy(self) -> ConstraintPolicy: ...
    def load_stories(self) -> list[Story]: ...
    def load_failure_state(self) -> FailureState: ...
    def save_contract(self, contract: AgentContract) -> Path: ...
    def save_stories(self, stories: list[Story]) -> Path: ...
    def save_failure_state(self, state: FailureState) -> Path: ...


class ChangeAgent(Protocol):
    def implement(self, request: ChangeRequest) -> AgentResult: ...


class Workspace(Protocol):
    def is_clean(self) -> bool: ...
    def snapshot(self) -> str: ...
    def collect_changes(self, base: str) -> ChangeSet: ...
    def commit_and_push(self, paths: Optional[Sequence[Path]], message: str) -> CommitOutcome: ...
    def discard_changes(self) -> bool: ...


STATES = [
    "idle",
    "selecting",
    "delegating",
    "evaluating",
    "committing",
    "recording_failure",
    "paused",
    "done",
]

TRANSITIONS = [
    {"trigger": "halt", "source": "idle", "dest": "paused"},
    {"trigger": "no_work", "source": "idle", "dest": "done"},
    {"trigger": "select", "source": "idle", "dest": "selecting"},
    {"trigger": "delegate", "source": "selecting", "dest": "delegating"},
    {"trigger": "change_produced", "source": "delegating", "dest": "evaluating"},
    {"trigger": "agent_failed", "source": "delegating", "dest": "recording_failure"},
    {"trigger": "guard_passed", "source": "evaluating", "dest": "committing"},
    {"trigger": "guard_failed", "source": "evaluating", "dest": "recording_failure"},
    {"trigger": "finish", "source": "committing", "dest": "done"},
    {"trigger": "finish", "source": "recording_failure", "dest": "done"},
]


class RunOutcome(Enum):
    PAUSED = "paused"
    NO_WORK = "no_work"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RunResult:
    """What one run decided."""
    outcome: RunOutcome
    state: str
    contract: AgentContract
    failure_state: FailureState
    story_id: Optional[str] = None
    story_status: Optional[StoryStatus] = None
    verdict: Optional[PolicyVerdict] = None
    summary: str = ""
    committed: bool = False
    paused_now: bool = False

    @property
    def exit_code(self) -> int:
        if self.outcome == RunOutcome.PAUSED:
            return RUN_EXIT_PAUSED
        if self.outcome == RunOutcome.FAILED:
            return RUN_EXIT_FAILED
        return RUN_EXIT_OK


class LoopRun:
    """State machine for a single run. Explicit triggers only."""

    def __init__(self, run_ref: str):
        self.run_ref = run_ref
        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        logger.info(
            f"[LOOP] {self.run_ref}: {event.transition.source} -> "
            f"{event.transition.dest} ({event.event.name})"
        )


def _commit_completed(message_prefix: str, story: Story) -> str:
    return f"{message_prefix}: complete {story.id} - {story.title}"


def _commit_failure(message_prefix: str, story: Story, code: str, paused: bool) -> str:
    message = f"{message_prefix}: record failure on {story.id} ({code})"
    if paused:
        message += " [paused]"
    return message


class LoopController:
    def __init__(
        self,
        state_store: StateStore,
        agent: ChangeAgent,
        workspace: Workspace,
        commit_prefix: str = "loopguard",
        discard_failed_changes: bool = True,
        verbose: bool = False,
    ):
        self.state_store = state_store
        self.agent = agent
        self.workspace = workspace
        self.commit_prefix = commit_prefix
        self.discard_failed_changes = discard_failed_changes
        self.verbose = verbose

    def run_once(self, run_ref: str) -> RunResult:
        """Execute one governed iteration.

        Raises:
            ConfigError: A state document is missing or invalid, or the worktree
                is dirty (nothing mutated)
            CommitError: The checkpoint could not be committed or pushed
        """
        run = LoopRun(run_ref)

        # Load everything first: fail closed before touching state
        contract = self.state_store.load_contract()
        policy = self.state_store.load_policy()
        stories = self.state_store.load_stories()
        failures = self.state_store.load_failure_state()

        if contract.paused:
            run.halt()
            logger.warning(
                f"[LOOP] {run_ref}: loop is paused after {failures.consecutive_failures} "
                f"consecutive failures; clear PAUSED to resume"
            )
            return RunResult(
                outcome=RunOutcome.PAUSED,
                state=run.state,
                contract=contract,
                failure_state=failures,
                summary="Loop is paused",
            )

        story = select_next(stories)
        if story is None:
            run.no_work()
            logger.info(f"[LOOP] {run_ref}: no todo stories remaining")
            return RunResult(
                outcome=RunOutcome.NO_WORK,
                state=run.state,
                contract=contract,
                failure_state=failures,
                summary="No todo stories remaining",
            )

        if not self.workspace.is_clean():
            raise ConfigError(
                "worktree",
                "Uncommitted changes present; commit or clean them before the next run",
            )

        transition(story, StoryStatus.DOING)
        run.select()

        base = self.workspace.snapshot()
        run.delegate()
        request = ChangeRequest(
            run_ref=run_ref,
            story_id=story.id,
            title=story.title,
            acceptance=list(story.acceptance),
            notes=story.notes,
            contract=contract,
            failure_state=failures,
            policy=policy,
        )
        agent_result = self._delegate(request)

        changes = None
        if agent_result.success:
            try:
                changes = self.workspace.collect_changes(base)
            except Exception as e:
                agent_result = AgentResult(success=False, summary=f"Could not compute change set: {e}")

        if changes is None:
            run.agent_failed()
            return self._record_failure(
                run, contract, failures, story, code="AgentFailure", summary=agent_result.summary,
            )

        run.change_produced()
        verdict = evaluate(changes, policy)
        if self.verbose:
            self._log_suppressed(run_ref, changes, policy)

        if not verdict.passed:
            run.guard_failed()
            logger.warning(f"[GUARD] {run_ref}: {verdict.code_name}: {verdict.message}")
            return self._record_failure(
                run, contract, failures, story,
                code=verdict.code_name, summary=verdict.message, verdict=verdict,
            )

        run.guard_passed()
        logger.info(f"[GUARD] {run_ref}: {verdict.message}")
        return self._commit_success(run, contract, failures, stories, story, verdict)

    def _delegate(self, request: ChangeRequest) -> AgentResult:
        try:
            return self.agent.implement(request)
        except Exception as e:
            logger.warning(f"[AGENT] {request.run_ref}: agent raised {type(e).__name__}: {e}")
            return AgentResult(success=False, summary=f"Agent error: {e}")

    def _log_suppressed(self, run_ref: str, changes: ChangeSet, policy: ConstraintPolicy) -> None:
        for extra in explain(changes, policy)[1:]:
            logger.info(f"[GUARD] {run_ref}: suppressed {extra.code_name}: {extra.message}")

    def _commit_success(self, run: LoopRun, contract: AgentContract, failures: FailureState,
                        stories: list[Story], story: Story, verdict: PolicyVerdict) -> RunResult:
        transition(story, StoryStatus.DONE)
        failures = record_success(failures)

        self.state_store.save_stories(stories)
        self.state_store.save_failure_state(failures)

        outcome = self.workspace.commit_and_push(None, _commit_completed(self.commit_prefix, story))
        run.finish()
        return RunResult(
            outcome=RunOutcome.SUCCEEDED,
            state=run.state,
            contract=contract,
            failure_state=failures,
            story_id=story.id,
            story_status=story.status,
            verdict=verdict,
            summary=verdict.message,
            committed=outcome.committed,
        )

    def _record_failure(self, run: LoopRun, contract: AgentContract, failures: FailureState,
                        story: Story, code: str, summary: str,
                        verdict: Optional[PolicyVerdict] = None) -> RunResult:
        failures = record_failure(failures, run.run_ref, f"{code}: {summary}")

        paths = [self.state_store.save_failure_state(failures)]
        paused_now = False
        if should_pause(failures, contract.max_failure_retries) and not contract.paused:
            contract = replace(contract, paused=True)
            paths.append(self.state_store.save_contract(contract))
            paused_now = True
            logger.warning(
                f"[LOOP] {run.run_ref}: {failures.consecutive_failures} consecutive failures "
                f"(limit {contract.max_failure_retries}), pausing loop"
            )

        outcome = self.workspace.commit_and_push(
            paths, _commit_failure(self.commit_prefix, story, code, paused_now),
        )
        if self.discard_failed_changes:
            self.workspace.discard_changes()

        run.finish()
        return RunResult(
            outcome=RunOutcome.FAILED,
            state=run.state,
            contract=contract,
            failure_state=failures,
            story_id=story.id,
            story_status=story.status,
            verdict=verdict,
            summary=f"{code}: {summary}",
            committed=outcome.committed,
            paused_now=paused_now,
        )
