"""Shared constants for loopguard."""

import re

# State directory layout
DEFAULT_STATE_DIR = ".loopguard"
STORIES_FILE = "stories.json"
GUARDRAILS_FILE = "guardrails.yaml"
FAILURE_STATE_FILE = "failure_state.json"
AGENT_CONTRACT_FILE = "agent.env"
PROFILE_FILE = "loop.env"

# Run lock, created inside the repository's git directory, never the worktree
LOCK_FILE = "loopguard-run.lock"

# Guard exit statuses (0 = pass). The trigger pipeline keys off these alone.
EXIT_PASS = 0
EXIT_TOO_MANY_FILES = 2
EXIT_DENIED_PATH = 3
EXIT_OUTSIDE_ALLOWLIST = 4
EXIT_DEPENDENCY_CHANGE = 5
EXIT_TOO_MANY_LINES = 6

# Placeholders accepted in AGENT_COMMAND
AGENT_COMMAND_VARIABLES = frozenset({"prompt", "worktree", "story_id"})

# Run exit statuses
RUN_EXIT_OK = 0
RUN_EXIT_FAILED = 1
RUN_EXIT_CONFIG = 2
RUN_EXIT_COMMIT = 3
RUN_EXIT_PAUSED = 8

# Recognised dependency manifests and lock files, matched on basename
DEPENDENCY_MANIFESTS = frozenset({
    "package.json",
    "package-lock.json",
    "npm-shrinkwrap.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "pyproject.toml",
    "poetry.lock",
    "Pipfile",
    "Pipfile.lock",
    "setup.py",
    "setup.cfg",
    "uv.lock",
    "go.mod",
    "go.sum",
    "Cargo.toml",
    "Cargo.lock",
    "Gemfile",
    "Gemfile.lock",
    "composer.json",
    "composer.lock",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
})

# requirements.txt, requirements-dev.txt, requirements/base.txt handled separately
REQUIREMENTS_PATTERN = re.compile(r'^requirements([-_.][\w.-]+)?\.(txt|in)$')
