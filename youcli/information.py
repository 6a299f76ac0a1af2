"""Environment facts injected into the system preamble."""

import os
import platform
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import YouConfig

# Entries listed from the working directory before truncating.
MAX_DIRECTORY_ENTRIES = 200


def get_system_information() -> str:
    uname = platform.uname()
    return (
        f"System: {uname.system}\n"
        f"Kernel Version: {uname.release}\n"
        f"OS Version: {uname.version}\n"
        f"Machine: {uname.machine}\n"
        f"Host Name: {uname.node}\n"
    )


def get_current_time() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def get_current_directory_structure(
    directory: Optional[Path] = None, limit: int = MAX_DIRECTORY_ENTRIES
) -> str:
    """List the directory as ``dir``/``file`` lines, sorted by name."""
    directory = Path(directory or os.getcwd())
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as e:
        return f"(unavailable: {e})\n"

    lines = [
        f"{'dir' if entry.is_dir() else 'file'} {entry.name}"
        for entry in entries[:limit]
    ]
    if len(entries) > limit:
        lines.append(f"... and {len(entries) - limit} more entries")
    return "\n".join(lines) + "\n"


class ContextualInformation:
    """Snapshot of the facts the LLM needs about the user's environment."""

    def __init__(self, config: YouConfig, working_directory: Optional[Path] = None):
        self.config = config
        self.working_directory = Path(working_directory or os.getcwd())
        self.system_information = get_system_information()
        self.current_time = get_current_time()
        self.current_directory_structure = get_current_directory_structure(
            self.working_directory
        )

    def render(self) -> str:
        """Render the facts as a block of text for the preamble."""
        preferred = self.config.get_preferred_clis() or "none"
        return (
            "Environment:\n"
            f"{self.system_information}"
            f"Current Working Directory: {self.working_directory}\n"
            "Current Working Directory Structure:\n"
            f"{self.current_directory_structure}"
            f"Current Date and Time: {self.current_time}\n"
            f"User preferred CLIs: {preferred}\n"
        )
