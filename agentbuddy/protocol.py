"""
Planner reply protocol.

Every planner turn must produce one JSON object whose `phase` decides
what the loop does next. Replies are a tagged union keyed on `phase`;
parsing is strict and fails closed with ProtocolViolation.

Keys are camelCase on the wire. The older key names the planner prompt
used to teach (`step`, `PHASES`, `fType`, `fInput`, `fContent`,
`PackagesInstalled`) are still accepted on input.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union, get_args

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from agentbuddy.tasks import TaskKind, TaskOutcome

Phase = Literal["analyze", "convert", "action", "output", "exit"]
PHASES: tuple[str, ...] = get_args(Phase)


class ProtocolViolation(Exception):
    """The planner reply is not valid structured data or has no usable phase."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)


# ---------------------------------------------------------------------------
# Reply variants
# ---------------------------------------------------------------------------

class _Reply(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AnalyzeReply(_Reply):
    phase: Literal["analyze"]
    summary: str = Field(validation_alias=AliasChoices("summary", "content"))


class ConvertReply(_Reply):
    phase: Literal["convert"]
    phases: list[str] = Field(validation_alias=AliasChoices("phases", "PHASES"))


class ActionReply(_Reply):
    phase: Literal["action"]
    task_type: TaskKind | None = Field(
        default=None, validation_alias=AliasChoices("taskType", "task_type", "fType")
    )
    task_input: str | list[str] | None = Field(
        default=None, validation_alias=AliasChoices("taskInput", "task_input", "fInput")
    )
    task_content: str | None = Field(
        default=None, validation_alias=AliasChoices("taskContent", "task_content", "fContent")
    )
    task_outcome: TaskOutcome | None = None

    @field_validator("task_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("task_content", mode="before")
    @classmethod
    def _stringify_content(cls, value: Any) -> Any:
        # Models often send structured file bodies (package.json) as objects.
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2)
        return value

    @property
    def has_task(self) -> bool:
        return self.task_type is not None and self.task_input is not None


class OutputReply(_Reply):
    phase: Literal["output"]
    content: str = ""
    packages_installed: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("packagesInstalled", "packages_installed", "PackagesInstalled"),
    )
    component_name: str | None = Field(
        default=None, validation_alias=AliasChoices("componentName", "component_name")
    )


class ExitReply(_Reply):
    phase: Literal["exit"]
    content: str | None = None


StructuredReply = Annotated[
    Union[AnalyzeReply, ConvertReply, ActionReply, OutputReply, ExitReply],
    Field(discriminator="phase"),
]

_reply_adapter: TypeAdapter[StructuredReply] = TypeAdapter(StructuredReply)


# ---------------------------------------------------------------------------
# Parsing / serialization
# ---------------------------------------------------------------------------

def parse_reply(text: str) -> StructuredReply:
    """Parse raw planner text into a StructuredReply or raise ProtocolViolation."""
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ProtocolViolation(f"Reply is not valid JSON: {e}", raw=text) from e

    if not isinstance(raw, dict):
        raise ProtocolViolation(f"Reply must be a JSON object, got {type(raw).__name__}", raw=text)

    if "phase" not in raw and "step" in raw:
        raw["phase"] = raw.pop("step")

    phase = raw.get("phase")
    if phase is None:
        raise ProtocolViolation("Reply has no 'phase' field", raw=text)
    if isinstance(phase, str):
        phase = phase.strip().lower()
        raw["phase"] = phase
    if phase not in PHASES:
        raise ProtocolViolation(f"Unrecognized phase {phase!r}; expected one of {list(PHASES)}", raw=text)

    try:
        return _reply_adapter.validate_python(raw)
    except ValidationError as e:
        raise ProtocolViolation(f"Invalid '{phase}' reply: {e}", raw=text) from e


def serialize_reply(reply: StructuredReply) -> str:
    """
    Canonical JSON form stored as the assistant message.

    Unset reply fields are dropped, but a task outcome always carries
    `result`: a null result is how the planner learns a file is missing.
    """
    data = reply.model_dump(mode="json", by_alias=True, exclude_none=True)
    outcome = getattr(reply, "task_outcome", None)
    if outcome is not None:
        record = outcome.model_dump(mode="json")
        data["taskOutcome"] = {k: v for k, v in record.items() if v is not None or k == "result"}
    return json.dumps(data, ensure_ascii=False)
