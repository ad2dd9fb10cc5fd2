"""
Agent Buddy Working Directory

The single "current directory" cursor every filesystem and shell task
resolves against. It lives for the whole session and only the task
executor moves it.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger


class WorkingDirectory:
    """
    Mutable cursor over the filesystem, starting at the launch directory.
    """

    def __init__(self, start: Path | str | None = None):
        self._path = Path(start).expanduser().resolve() if start else Path.cwd().resolve()
        if not self._path.is_dir():
            raise NotADirectoryError(f"Working directory does not exist: {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def resolve(self, target: str) -> Path:
        """Resolve a task path against the cursor. Absolute paths pass through."""
        return (self._path / Path(target.strip()).expanduser()).resolve()

    def change_to(self, target: str) -> Path:
        """
        Move the cursor to target, creating the directory (and parents)
        when it does not exist yet. Never fails: if the target cannot be
        created (a file is in the way, or the path is unusable) the cursor
        stays where it was.
        """
        try:
            new_path = self.resolve(target)
        except (OSError, ValueError) as e:
            logger.warning(f"[CWD] Invalid directory {target!r}, staying in {self._path}: {e}")
            return self._path
        if new_path.is_dir():
            logger.info(f"[CWD] Changed directory to {new_path}")
        else:
            try:
                new_path.mkdir(parents=True, exist_ok=True)
            except (OSError, ValueError) as e:
                logger.warning(f"[CWD] Cannot create {new_path}, staying in {self._path}: {e}")
                return self._path
            logger.info(f"[CWD] Created and changed directory to {new_path}")
        self._path = new_path
        return new_path

    def __repr__(self) -> str:
        return f"WorkingDirectory({str(self._path)!r})"
