"""
Prompt templates for the change agent.

Templates live in loopguard/prompts/<name>.md and use str.format()
placeholders ({story_id}); {{ and }} produce literal braces. HTML comments
(<!-- ... -->) document a template and are stripped before rendering.

Rendering is strict in both directions: every placeholder must be supplied,
and supplying a variable the template never uses is reported too, so the
template and its caller cannot drift apart silently.
"""

import logging
import re
import string
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["PromptError", "load_prompt", "template_variables", "render_prompt", "clear_cache", "PROMPTS_DIR"]

_HTML_COMMENT_PATTERN = re.compile(r'<!--.*?-->\s*', re.DOTALL)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


class PromptError(Exception):
    """A prompt template is missing or does not match its variables."""
    pass


@lru_cache(maxsize=8)
def load_prompt(name: str) -> str:
    """
    Load a template by name with HTML comments stripped (cached).

    Raises:
        PromptError: If prompts/<name>.md doesn't exist
    """
    prompt_path = PROMPTS_DIR / f"{name}.md"
    if not prompt_path.exists():
        raise PromptError(f"Prompt template '{name}' not found. Expected file: {prompt_path}")

    logger.debug(f"Loading prompt template: {name}")
    return _HTML_COMMENT_PATTERN.sub('', prompt_path.read_text()).lstrip()


def template_variables(name: str) -> set[str]:
    """Names of the placeholders used by a template."""
    return {
        field.split(".")[0].split("[")[0]
        for _, field, _, _ in string.Formatter().parse(load_prompt(name))
        if field
    }


def render_prompt(name: str, **variables) -> str:
    """
    Render a template with exactly the variables it uses.

    Raises:
        PromptError: If a placeholder is not supplied or a variable is unused
    """
    expected = template_variables(name)
    missing = sorted(expected - variables.keys())
    if missing:
        raise PromptError(f"Missing variable(s) {', '.join(missing)} for prompt '{name}'")
    unused = sorted(variables.keys() - expected)
    if unused:
        raise PromptError(f"Unused variable(s) {', '.join(unused)} for prompt '{name}'")
    return load_prompt(name).format(**variables)


def clear_cache():
    """Clear the template cache (useful for testing)."""
    load_prompt.cache_clear()
