"""
Agent Buddy Task Executor

Runs one Task against the local machine. Every kind maps to exactly one
OS primitive or pure text transform.

Failure policy:
  - `shell` is the only task whose failure propagates (ShellFailure).
  - Missing files on read/edit/contains degrade to a warning and a
    benign value (None / no-op / False).
  - Unusable paths and OS errors while writing or removing raise
    FilesystemAdvisory, which `run()` turns into a failed outcome
    instead of stopping the loop.
  - `clean` never removes the current directory or one of its parents.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from rich.console import Console
from rich.markup import escape

from agentbuddy.diagnostics import extract_error_lines, suggest_fixes
from agentbuddy.tasks import (
    TASK_KINDS,
    CdTask,
    CleanTask,
    ContainsTask,
    EditTask,
    ErrorsTask,
    LogTask,
    ReadTask,
    ShellTask,
    SuggestionsTask,
    Task,
    TaskOutcome,
    WriteTask,
)
from agentbuddy.workspace import WorkingDirectory

console = Console()


class ShellFailure(Exception):
    """A shell task exited nonzero (or timed out)."""

    def __init__(self, command: str, stderr: str, exit_code: int | None = None, stdout: str = ""):
        self.command = command
        self.stderr = stderr
        self.exit_code = exit_code
        self.stdout = stdout
        super().__init__(f"Command failed ({exit_code}): {command}\n{stderr}")


class FilesystemAdvisory(Exception):
    """A filesystem task could not complete. Reported, never fatal."""


class TaskExecutor:
    """
    Executes tasks relative to a WorkingDirectory it owns.

    The executor is the only writer of the cursor; pass the same
    instance through the whole session so `cd` persists across turns.
    """

    def __init__(
        self,
        cwd: WorkingDirectory | None = None,
        shell_timeout: int = 600,
        max_result_chars: int = 4000,
    ):
        self.cwd = cwd or WorkingDirectory()
        self.shell_timeout = shell_timeout
        self.max_result_chars = max_result_chars
        self._handlers: dict[str, Callable[[Any], Any]] = {
            "shell": self._shell,
            "write": self._write,
            "read": self._read,
            "edit": self._edit,
            "cd": self._cd,
            "clean": self._clean,
            "contains": self._contains,
            "log": self._log,
            "errors": self._errors,
            "suggestions": self._suggestions,
        }
        missing = set(TASK_KINDS) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for task kinds: {sorted(missing)}")

    def execute(self, task: Task) -> Any:
        """Run a task and return its raw result. Raises ShellFailure for shell errors."""
        logger.debug(f"[TASK] {task.kind} in {self.cwd.path}")
        return self._handlers[task.kind](task)

    def run(self, task: Task) -> TaskOutcome:
        """Run a task and fold every failure into a TaskOutcome."""
        try:
            result = self.execute(task)
        except ShellFailure as e:
            return TaskOutcome(
                status="failed",
                result=self._clip(e.stdout) or None,
                error=self._clip(e.stderr),
                exit_code=e.exit_code,
            )
        except FilesystemAdvisory as e:
            return TaskOutcome(status="failed", error=str(e))
        return TaskOutcome(status="ok", result=self._clip(result))

    def _clip(self, value: Any) -> Any:
        if isinstance(value, str) and len(value) > self.max_result_chars:
            return value[: self.max_result_chars] + f"\n... truncated ({len(value)} chars total)"
        return value

    def _resolve(self, target: str) -> Path:
        if "\x00" in target:
            raise FilesystemAdvisory(f"Invalid path {target!r}: embedded null byte")
        try:
            return self.cwd.resolve(target)
        except (OSError, ValueError) as e:
            logger.warning(f"[TASK] Invalid path {target!r}: {e}")
            raise FilesystemAdvisory(f"Invalid path {target!r}: {e}") from e

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    def _shell(self, task: ShellTask) -> str:
        command = task.input
        console.print(f"[cyan]$ {escape(command)}[/]")
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self.cwd.path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.shell_timeout,
            )
        except subprocess.TimeoutExpired as e:
            console.print(f"[red]✗ Timed out: {escape(command)}[/]")
            stdout = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
            raise ShellFailure(command, f"Timed out after {self.shell_timeout}s", None, stdout) from e
        except (OSError, ValueError) as e:
            console.print(f"[red]✗ Could not start: {escape(command)}[/]")
            raise ShellFailure(command, f"Could not start command: {e}") from e

        if result.returncode != 0:
            console.print(f"[red]✗ Failed ({result.returncode}): {escape(command)}[/]")
            if result.stderr.strip():
                console.print(f"[bright_red]{escape(result.stderr.strip())}[/]", highlight=False)
            raise ShellFailure(command, result.stderr, result.returncode, result.stdout)

        console.print(f"[green]✓ {escape(command)}[/]")
        if result.stdout.strip():
            console.print(result.stdout.strip(), style="dim", highlight=False, markup=False)
        return result.stdout

    def _write(self, task: WriteTask) -> None:
        fpath = self._resolve(task.input)
        try:
            fpath.parent.mkdir(parents=True, exist_ok=True)
            fpath.write_text(task.content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"[TASK] Cannot write {fpath}: {e}")
            raise FilesystemAdvisory(f"Cannot write {fpath}: {e}") from e
        console.print(f"[green]📄 File written:[/] [cyan]{escape(str(fpath))}[/]")

    def _read(self, task: ReadTask) -> str | None:
        fpath = self._resolve(task.input)
        if not fpath.is_file():
            logger.warning(f"[TASK] File not found: {fpath}")
            return None
        try:
            content = fpath.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"[TASK] Cannot read {fpath}: {e}")
            return None
        console.print(f"[yellow]📖 File content from:[/] [cyan]{escape(str(fpath))}[/]")
        return content

    def _edit(self, task: EditTask) -> None:
        fpath = self._resolve(task.input)
        if not fpath.is_file():
            logger.warning(f"[TASK] Cannot edit, file not found: {fpath}")
            return
        try:
            fpath.write_text(task.content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"[TASK] Cannot edit {fpath}: {e}")
            raise FilesystemAdvisory(f"Cannot edit {fpath}: {e}") from e
        console.print(f"[magenta]✏️ File edited:[/] [cyan]{escape(str(fpath))}[/]")

    def _cd(self, task: CdTask) -> None:
        new_path = self.cwd.change_to(task.input)
        console.print(f"[blue]📁 Now in:[/] [cyan]{escape(str(new_path))}[/]")

    def _clean(self, task: CleanTask) -> None:
        failed = []
        cursor = self.cwd.path
        for target in task.input:
            try:
                fpath = self._resolve(target)
            except FilesystemAdvisory as e:
                failed.append(str(e))
                continue
            if not fpath.exists() and not fpath.is_symlink():
                continue
            # The cursor must keep pointing at an existing directory
            if fpath == cursor or fpath in cursor.parents:
                logger.warning(f"[TASK] Refusing to remove {fpath}: it contains the current directory")
                failed.append(f"{fpath} (contains the current directory)")
                continue
            try:
                if fpath.is_dir() and not fpath.is_symlink():
                    shutil.rmtree(fpath)
                else:
                    fpath.unlink()
            except OSError as e:
                logger.warning(f"[TASK] Cannot remove {fpath}: {e}")
                failed.append(str(fpath))
                continue
            console.print(f"[red]🧹 Removed:[/] [cyan]{escape(str(fpath))}[/]")
        if failed:
            raise FilesystemAdvisory(f"Could not remove: {', '.join(failed)}")

    def _contains(self, task: ContainsTask) -> bool:
        fpath = self._resolve(task.input)
        if not fpath.is_file():
            logger.warning(f"[TASK] File not found for contains check: {fpath}")
            return False
        try:
            return task.content in fpath.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"[TASK] Cannot read {fpath}: {e}")
            return False

    def _log(self, task: LogTask) -> None:
        logger.info(f"[STEP] {task.input}")
        console.print(f"[black on white] 🔧 Step: [/] [bold]{escape(task.input)}[/]", highlight=False)

    def _errors(self, task: ErrorsTask) -> list[str]:
        errors = extract_error_lines(task.input)
        if errors:
            console.print("[white on red] 🛑 Detected Errors: [/]")
            for err in errors:
                console.print(f"  [bright_red]•[/] [yellow]{escape(err)}[/]", highlight=False)
        else:
            console.print("[green]✅ No critical errors found in stderr[/]")
        return errors

    def _suggestions(self, task: SuggestionsTask) -> list[str]:
        suggestions = suggest_fixes(task.input)
        if suggestions:
            console.print("[white on blue] 💡 Suggestions: [/]")
            for s in suggestions:
                console.print(f"  [cyan]•[/] [green]{escape(s)}[/]", highlight=False)
        return suggestions
