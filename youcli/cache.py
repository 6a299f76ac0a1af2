"""Saved script cache: named ``.sh`` files reusable without an LLM call."""

from pathlib import Path
from typing import List, Optional

from .logging import get_logger

logger = get_logger(__name__)

SCRIPT_SUFFIX = ".sh"
SHEBANG = "#!/usr/bin/env sh\n"


class CacheError(Exception):
    """Cache-related errors."""

    pass


def render_script(command: str) -> str:
    """File content of a saved script."""
    return SHEBANG + command


class ScriptCache:
    """Manages saved scripts in a single directory."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.scripts: List[Path] = []
        self.refresh_scripts()

    def refresh_scripts(self) -> None:
        """Re-read the in-memory script list from the cache directory."""
        self.scripts = sorted(
            path
            for path in self.cache_dir.iterdir()
            if path.is_file() and path.suffix == SCRIPT_SUFFIX
        )

    def search(self, query: str) -> Optional[Path]:
        """Find the script whose name equals the query exactly."""
        for script in self.scripts:
            if script.stem == query:
                return script
        return None

    def read_script(self, script_name: str) -> str:
        script = self.search(script_name)
        if script is None:
            raise CacheError(f"Script '{script_name}' not found")
        return script.read_text(encoding="utf-8")

    def add_script(self, script_name: str, command: str) -> Path:
        """Save a command as ``<script_name>.sh``; never overwrites."""
        script_name = script_name.strip()
        if not script_name or Path(script_name).name != script_name:
            raise CacheError(f"Invalid script name: '{script_name}'")

        path = self.cache_dir / f"{script_name}{SCRIPT_SUFFIX}"
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(render_script(command))
        except FileExistsError:
            raise CacheError(f"Script '{script_name}' already exists") from None
        except OSError as e:
            raise CacheError(f"Failed to save script '{script_name}': {e}") from e

        logger.debug("Saved script %s", path)
        self.refresh_scripts()
        return path

    def list_scripts(self) -> List[str]:
        return [script.stem for script in self.scripts]

    def delete_script(self, script_name: str) -> None:
        script = self.search(script_name)
        if script is None:
            raise CacheError(f"Script '{script_name}' not found")

        try:
            script.unlink()
        except OSError as e:
            raise CacheError(f"Failed to remove script '{script_name}': {e}") from e
        self.refresh_scripts()
