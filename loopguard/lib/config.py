"""
Configuration loaders for loopguard.

Loads the agent contract and project profile from .env option files and the
guardrail policy from YAML. A missing or malformed document raises
ConfigError; only optional profile settings have defaults.
"""

import shlex
import string
from dataclasses import dataclass
from pathlib import Path

import yaml

from loopguard.guard.models import ConstraintPolicy
from . import constants
from . import envparse
from . import validate


class ConfigError(Exception):
    """A required state document is missing or fails schema validation.

    Fatal: the run aborts before any state mutation.
    """

    def __init__(self, document: str, message: str):
        self.document = document
        super().__init__(f"{document}: {message}")


@dataclass(frozen=True)
class AgentContract:
    """Run-level configuration from agent.env.

    paused is set only when the failure threshold is crossed and cleared
    only by a human (loopguard resume).
    """
    paused: bool
    max_failure_retries: int
    require_tests: bool = False
    max_iterations_per_run: int = 1


@dataclass(frozen=True)
class LoopProfile:
    """Project profile from loop.env (agent command, timeouts, commit options)."""
    agent_command: str
    agent_timeout: int = 600
    test_command: str = ""
    test_timeout: int = 300
    push_after_commit: bool = True
    commit_prefix: str = "loopguard"


@dataclass(frozen=True)
class StatePaths:
    """Locations of the persisted state documents."""
    root: Path

    @property
    def stories(self) -> Path:
        return self.root / constants.STORIES_FILE

    @property
    def guardrails(self) -> Path:
        return self.root / constants.GUARDRAILS_FILE

    @property
    def failure_state(self) -> Path:
        return self.root / constants.FAILURE_STATE_FILE

    @property
    def agent_contract(self) -> Path:
        return self.root / constants.AGENT_CONTRACT_FILE

    @property
    def profile(self) -> Path:
        return self.root / constants.PROFILE_FILE


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _load_env_document(path: Path, document: str) -> dict:
    try:
        return envparse.load_env(path)
    except FileNotFoundError:
        raise ConfigError(document, f"Required document not found: {path}") from None
    except ValueError as e:
        raise ConfigError(document, f"Invalid option line in {path}: {e}") from None


def load_agent_contract(path: Path) -> AgentContract:
    """Load agent.env and return AgentContract.

    Recognised options: PAUSED, MAX_ITERATIONS_PER_RUN (must be 1),
    MAX_FAILURE_RETRIES, REQUIRE_TESTS. Other lines are ignored here and
    preserved when the contract is rewritten.
    """
    env = _load_env_document(path, "agent contract")
    try:
        validate.validate(env, "agent_contract")
    except validate.ValidationError as e:
        raise ConfigError("agent contract", str(e)) from None

    return AgentContract(
        paused=_parse_bool(env["PAUSED"]),
        max_failure_retries=int(env["MAX_FAILURE_RETRIES"]),
        require_tests=_parse_bool(env.get("REQUIRE_TESTS", "false")),
        max_iterations_per_run=int(env.get("MAX_ITERATIONS_PER_RUN", "1")),
    )


def save_agent_contract(path: Path, contract: AgentContract) -> None:
    """Write the contract options back to agent.env, keeping unrelated lines."""
    envparse.update_env(path, {
        "PAUSED": "true" if contract.paused else "false",
        "MAX_ITERATIONS_PER_RUN": str(contract.max_iterations_per_run),
        "MAX_FAILURE_RETRIES": str(contract.max_failure_retries),
        "REQUIRE_TESTS": "true" if contract.require_tests else "false",
    })


def policy_from_dict(data: dict) -> ConstraintPolicy:
    """Build a ConstraintPolicy from a validated guardrails document."""
    iteration = data["iteration"]
    scope = data.get("scope") or {}
    dependencies = data.get("dependencies") or {}
    return ConstraintPolicy(
        max_files_changed=iteration["maxFilesChanged"],
        max_lines_changed=iteration["maxLinesChanged"],
        allow_paths=tuple(scope.get("allowPaths", [])),
        deny_paths=tuple(scope.get("denyPaths", [])),
        allow_dependency_changes=dependencies.get("allowDependencyChanges", False),
    )


def load_policy(path: Path) -> ConstraintPolicy:
    """Load guardrails.yaml and return ConstraintPolicy."""
    if not path.exists():
        raise ConfigError("constraint policy", f"Required document not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError("constraint policy", f"Invalid YAML in {path}: {e}") from None

    try:
        validate.validate(data, "guardrails")
    except validate.ValidationError as e:
        raise ConfigError("constraint policy", str(e)) from None

    return policy_from_dict(data)


def _check_agent_command(command: str, path: Path) -> None:
    """Reject an AGENT_COMMAND that could never be substituted."""
    try:
        fields = {
            field.split(".")[0].split("[")[0]
            for part in shlex.split(command)
            for _, field, _, _ in string.Formatter().parse(part)
            if field is not None
        }
    except ValueError as e:
        raise ConfigError("loop profile", f"Invalid AGENT_COMMAND in {path}: {e}") from None

    unknown = sorted(fields - constants.AGENT_COMMAND_VARIABLES)
    if unknown:
        names = ", ".join("{" + name + "}" for name in unknown)
        raise ConfigError(
            "loop profile",
            f"Unknown placeholder(s) {names} in AGENT_COMMAND in {path}; "
            f"write literal braces as {{{{ and }}}}",
        )


def load_loop_profile(path: Path) -> LoopProfile:
    """Load loop.env and return LoopProfile."""
    env = _load_env_document(path, "loop profile")
    agent_command = env.get("AGENT_COMMAND", "").strip()
    if not agent_command:
        raise ConfigError("loop profile", f"AGENT_COMMAND is required in {path}")
    _check_agent_command(agent_command, path)

    try:
        agent_timeout = int(env.get("AGENT_TIMEOUT", "600"))
        test_timeout = int(env.get("TEST_TIMEOUT", "300"))
    except ValueError as e:
        raise ConfigError("loop profile", f"Invalid timeout in {path}: {e}") from None

    return LoopProfile(
        agent_command=agent_command,
        agent_timeout=agent_timeout,
        test_command=env.get("TEST_COMMAND", "").strip(),
        test_timeout=test_timeout,
        push_after_commit=_parse_bool(env.get("PUSH_AFTER_COMMIT", "true")),
        commit_prefix=env.get("COMMIT_PREFIX", "loopguard").strip() or "loopguard",
    )
