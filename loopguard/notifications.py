"""
Desktop notifications for loopguard runs.

A run notifies when it records a failure and, more urgently, when that
failure pauses the loop. Delivery goes through notify-send and is best
effort: a missing or broken notifier is logged and never affects the run.
"""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

APP_NAME = "loopguard"
VALID_URGENCIES = ("low", "normal", "critical")
MAX_BODY_LENGTH = 200


def _truncate(text: str, limit: int = MAX_BODY_LENGTH) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def notify(title: str, message: str, urgency: str = "normal") -> bool:
    """
    Send a desktop notification.

    Returns:
        True if notify-send accepted the notification
    """
    if urgency not in VALID_URGENCIES:
        logger.warning(f"Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    binary = shutil.which("notify-send")
    if binary is None:
        logger.debug("notify-send not found, skipping notification")
        return False

    cmd = [binary, "--urgency", urgency, "--app-name", APP_NAME, title, _truncate(message)]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"notify-send failed: {e}")
        return False

    if result.returncode != 0:
        logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr.strip()}")
        return False
    return True


def notify_failed(story_id: str, summary: str) -> bool:
    """A run failed on story_id and the failure was recorded."""
    return notify(f"{APP_NAME}: {story_id} failed", summary, "normal")


def notify_paused(consecutive_failures: int, summary: str) -> bool:
    """The failure limit was reached; the loop paused itself and needs a human."""
    return notify(
        f"{APP_NAME}: loop paused",
        f"{consecutive_failures} consecutive failures. Last: {summary}",
        "critical",
    )
