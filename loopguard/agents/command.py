"""
Command-line change agent for loopguard.

Runs the configured AGENT_COMMAND in the worktree with a rendered story
prompt. The agent leaves its modification in the working tree; loopguard
computes the ChangeSet itself.

COMMAND TEMPLATES
=================

AGENT_COMMAND is split with shlex and supports {variable} substitution:
- {prompt}: The rendered prompt. If absent from the template, the prompt is
  passed via stdin instead.
- {worktree}: Path to the repository working tree.
- {story_id}: Id of the story being implemented.

Literal braces are written doubled ({{ and }}), as in str.format(); for
example a jq filter becomes jq '{{a: .b}}'. Any other placeholder makes
load_loop_profile reject the profile with ConfigError, so a bad template
never reaches a run.

Example loop.env:
    AGENT_COMMAND="codex exec --full-auto -C {worktree} {prompt}"
    AGENT_COMMAND="claude --print --permission-mode acceptEdits"
"""

import logging
import shlex
import string
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loopguard.guard.models import ConstraintPolicy
from loopguard.lib.config import AgentContract
from loopguard.lib.prompts import render_prompt
from loopguard.workflow.failures import FailureState

logger = logging.getLogger(__name__)


@dataclass
class ChangeRequest:
    """Everything the change agent gets for one story."""
    run_ref: str
    story_id: str
    title: str
    acceptance: list[str]
    contract: AgentContract
    failure_state: FailureState
    policy: ConstraintPolicy
    notes: Optional[str] = None


@dataclass
class AgentResult:
    success: bool
    summary: str
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""


@dataclass
class AgentCommand:
    """Result of building an agent command."""
    cmd: list[str]
    prompt_via_stdin: bool


def build_command(template: str, context: dict[str, str]) -> AgentCommand:
    """Split a command template and substitute variables.

    Raises:
        ValueError: If the template is empty or references an unknown variable
    """
    parts = shlex.split(template)
    if not parts:
        raise ValueError("Agent command template is empty")

    fields = {field for part in parts for _, field, _, _ in string.Formatter().parse(part) if field}
    cmd = []
    for part in parts:
        try:
            cmd.append(part.format(**context))
        except (KeyError, IndexError) as e:
            raise ValueError(f"Unknown variable {e} in agent command template") from None
    prompt_via_stdin = "prompt" not in fields
    return AgentCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin)


def _format_list(items: tuple[str, ...] | list[str], empty: str) -> str:
    return ", ".join(items) if items else empty


def build_prompt(request: ChangeRequest) -> str:
    """Render the implement prompt for a change request."""
    acceptance = "\n".join(f"- {item}" for item in request.acceptance) or "- (none given)"
    policy = request.policy
    failure = request.failure_state
    return render_prompt(
        "implement",
        story_id=request.story_id,
        title=request.title,
        acceptance=acceptance,
        notes=request.notes or "(none)",
        max_files=policy.max_files_changed,
        max_lines=policy.max_lines_changed,
        allow_paths=_format_list(policy.allow_paths, "any path"),
        deny_paths=_format_list(policy.deny_paths, "(nothing denied)"),
        dependency_rule=(
            "Dependency manifest changes are allowed"
            if policy.allow_dependency_changes
            else "Do not modify dependency manifests or lock files"
        ),
        consecutive_failures=failure.consecutive_failures,
        last_failure=failure.last_failure_summary or "(none)",
        require_tests=(
            "Run the test suite and make sure it passes before finishing."
            if request.contract.require_tests
            else "Add or update tests where it makes sense."
        ),
    )


class CommandAgent:
    def __init__(
        self,
        command_template: str,
        worktree: Path,
        timeout: int = 600,
        test_command: str = "",
        test_timeout: int = 300,
        log_file: Path | None = None,
    ):
        self.command_template = command_template
        self.worktree = worktree
        self.timeout = timeout
        self.test_command = test_command
        self.test_timeout = test_timeout
        self.log_file = log_file

    def implement(self, request: ChangeRequest) -> AgentResult:
        """Run the agent for one story.

        Never raises for agent-side problems: timeouts, missing binaries and
        non-zero exits all come back as a failed AgentResult.
        """
        prompt = build_prompt(request)
        try:
            command = build_command(self.command_template, {
                "prompt": prompt,
                "worktree": str(self.worktree),
                "story_id": request.story_id,
            })
        except ValueError as e:
            return AgentResult(success=False, summary=f"Agent command invalid: {e}", exit_code=-1)

        logger.info(f"[AGENT] running {command.cmd[0]} for {request.story_id}")
        result = self._run(command.cmd, prompt if command.prompt_via_stdin else None, self.timeout)
        if not result.success:
            return result

        if request.contract.require_tests and self.test_command:
            return self._run_tests()

        return result

    def _run_tests(self) -> AgentResult:
        logger.info(f"[AGENT] running tests: {self.test_command}")
        result = self._run(shlex.split(self.test_command), None, self.test_timeout)
        if not result.success:
            result.summary = f"Tests failed after agent change: {result.summary}"
        return result

    def _run(self, cmd: list[str], stdin: str | None, timeout: int) -> AgentResult:
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.worktree),
                input=stdin,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return AgentResult(success=False, summary=f"{cmd[0]} timed out after {timeout}s", exit_code=-1)
        except OSError as e:
            return AgentResult(success=False, summary=f"Failed to run {cmd[0]}: {e}", exit_code=-1)

        if self.log_file:
            with open(self.log_file, "a") as f:
                f.write(
                    f"=== COMMAND ===\n{' '.join(cmd)}\n\n"
                    f"=== EXIT CODE ===\n{proc.returncode}\n\n"
                    f"=== STDOUT ===\n{proc.stdout}\n\n"
                    f"=== STDERR ===\n{proc.stderr}\n"
                )

        if proc.returncode != 0:
            lines = (proc.stderr.strip() or proc.stdout.strip()).splitlines()
            summary = f"{cmd[0]} exited with {proc.returncode}"
            if lines:
                summary += f": {lines[-1]}"
            return AgentResult(
                success=False,
                summary=summary,
                exit_code=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )

        return AgentResult(
            success=True,
            summary=f"{cmd[0]} completed",
            exit_code=0,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
