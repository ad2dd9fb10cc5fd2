"""
Task vocabulary.

A Task is one declarative instruction taken from an action reply. The
ten kinds form a closed union discriminated on `kind`, and each variant
carries only the fields it needs. Anything the planner sends outside
this vocabulary is rejected while parsing, never at dispatch time.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union, get_args

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

TaskKind = Literal[
    "shell",
    "write",
    "read",
    "edit",
    "cd",
    "clean",
    "contains",
    "log",
    "errors",
    "suggestions",
]

TASK_KINDS: tuple[str, ...] = get_args(TaskKind)


class TaskSpecError(Exception):
    """The action reply names a task but its fields do not fit that kind."""


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

class ShellTask(BaseModel):
    kind: Literal["shell"] = "shell"
    input: str = Field(min_length=1, description="Command line to run")


class WriteTask(BaseModel):
    kind: Literal["write"] = "write"
    input: str = Field(min_length=1, description="Target path")
    content: str = ""


class ReadTask(BaseModel):
    kind: Literal["read"] = "read"
    input: str = Field(min_length=1)


class EditTask(BaseModel):
    kind: Literal["edit"] = "edit"
    input: str = Field(min_length=1)
    content: str = ""


class CdTask(BaseModel):
    kind: Literal["cd"] = "cd"
    input: str = Field(min_length=1)


class CleanTask(BaseModel):
    kind: Literal["clean"] = "clean"
    input: list[str]

    @field_validator("input", mode="before")
    @classmethod
    def _coerce_single_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class ContainsTask(BaseModel):
    kind: Literal["contains"] = "contains"
    input: str = Field(min_length=1)
    content: str = ""


class LogTask(BaseModel):
    kind: Literal["log"] = "log"
    input: str


class ErrorsTask(BaseModel):
    kind: Literal["errors"] = "errors"
    input: str


class SuggestionsTask(BaseModel):
    kind: Literal["suggestions"] = "suggestions"
    input: str


Task = Annotated[
    Union[
        ShellTask,
        WriteTask,
        ReadTask,
        EditTask,
        CdTask,
        CleanTask,
        ContainsTask,
        LogTask,
        ErrorsTask,
        SuggestionsTask,
    ],
    Field(discriminator="kind"),
]

_task_adapter: TypeAdapter[Task] = TypeAdapter(Task)


def build_task(task_type: str, task_input: Any, task_content: Any = None) -> Task:
    """Build a typed Task from the loose fields of an action reply."""
    data: dict[str, Any] = {"kind": task_type, "input": task_input}
    if task_content is not None:
        data["content"] = task_content if isinstance(task_content, str) else str(task_content)
    try:
        return _task_adapter.validate_python(data)
    except ValidationError as e:
        raise TaskSpecError(f"Invalid '{task_type}' task: {e.errors()[0]['msg']}") from e


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class TaskOutcome(BaseModel):
    """What happened when a task ran. Recorded alongside its action reply."""
    status: Literal["ok", "failed", "skipped"]
    result: Any = None
    error: str | None = None
    exit_code: int | None = None
