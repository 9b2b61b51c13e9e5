"""
Safe .env file parser.

Parses KEY=value option files (agent.env, loop.env) without shell execution.
Rejects dangerous patterns that could enable injection.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',          # AND chaining
    r'\|\|',        # OR chaining
    r'\|',          # pipe
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _parse_line(line: str, lineno: int) -> tuple[str, str] | None:
    """Parse one line into (key, value), or None for blanks and comments."""
    line = line.strip()

    if not line or line.startswith('#'):
        return None

    if '=' not in line:
        raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

    key, _, value = line.partition('=')
    key = key.strip()
    value = value.strip()

    if not KEY_PATTERN.match(key):
        raise ValueError(f"Line {lineno}: Invalid key '{key}'")

    # Strip quotes if present
    if len(value) >= 2:
        if (value.startswith('"') and value.endswith('"')) or \
           (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]

    for pattern in FORBIDDEN_PATTERNS:
        if re.search(pattern, value):
            raise ValueError(f"Line {lineno}: Forbidden pattern in value for '{key}'")

    return key, value


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    result = {}
    path = Path(filepath)

    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")

    for lineno, line in enumerate(path.read_text().splitlines(), 1):
        parsed = _parse_line(line, lineno)
        if parsed is not None:
            key, value = parsed
            result[key] = value

    return result


def update_env(filepath: str | Path, updates: dict[str, str | None]) -> None:
    """
    Rewrite selected keys in an env file, preserving every other line.

    Keys mapped to None are removed. Keys not yet present are appended.
    Comments, ordering and unrelated options are left untouched.
    """
    path = Path(filepath)
    lines = path.read_text().splitlines() if path.exists() else []

    pending = dict(updates)
    out = []
    for line in lines:
        stripped = line.strip()
        key = stripped.partition('=')[0].strip() if '=' in stripped else None
        if key and not stripped.startswith('#') and key in pending:
            value = pending.pop(key)
            if value is not None:
                out.append(f'{key}="{value}"')
            continue
        out.append(line)

    for key, value in pending.items():
        if value is not None:
            if not KEY_PATTERN.match(key):
                raise ValueError(f"Invalid key '{key}'")
            out.append(f'{key}="{value}"')

    path.write_text("\n".join(out) + "\n")
