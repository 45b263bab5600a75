"""Path management for api-tester-cli.

Manages ~/.api-tester/ directory structure.
"""

import os
from pathlib import Path

# Base directory for all console data
CONSOLE_DIR = Path.home() / ".api-tester"

# Per-terminal-session storage slots
SESSIONS_DIR = CONSOLE_DIR / "sessions"

# Log directory (same as base for simplicity)
LOG_DIR = CONSOLE_DIR

# Environment variable that pins the session slot
SESSION_ENV_VAR = "API_TESTER_SESSION"


def ensure_dirs() -> None:
    """Create directory structure if missing.

    Creates:
    - ~/.api-tester/ (mode 0o700 - user-only access)
    - ~/.api-tester/sessions/ (mode 0o700)
    """
    CONSOLE_DIR.mkdir(mode=0o700, exist_ok=True)
    SESSIONS_DIR.mkdir(mode=0o700, exist_ok=True)


def get_log_file(name: str = "api-tester") -> Path:
    """Get path to a log file.

    Args:
        name: Log file name (without extension)

    Returns:
        Path to the log file
    """
    return LOG_DIR / f"{name}.log"


def default_session_id() -> str:
    """Identify the current terminal session.

    ``API_TESTER_SESSION`` wins when set; otherwise the parent process id
    (the interactive shell) scopes the slot, so two terminals never share
    a session.
    """
    pinned = os.environ.get(SESSION_ENV_VAR)
    if pinned:
        return pinned
    return f"ppid-{os.getppid()}"


def get_session_file(session_id: str) -> Path:
    """Get path to a session slot file.

    Args:
        session_id: Session identifier (see default_session_id)

    Returns:
        Path to the session JSON file
    """
    return SESSIONS_DIR / f"{session_id}.json"
