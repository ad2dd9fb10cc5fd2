from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

CycleStatus = Literal[
    "running",
    "completed",
    "exit",
    "protocol_failed",
    "endpoint_failed",
    "turn_limit",
]


class CycleState(BaseModel):
    """The working memory of one prompt-to-output cycle."""
    cycle_id: str
    prompt: str
    status: CycleStatus = "running"
    turns: int = 0
    protocol_failures: int = 0
    tasks_executed: int = 0
    task_failures: int = 0
    summary: str = ""
    plan_steps: list[str] = Field(default_factory=list)
    packages_installed: list[str] = Field(default_factory=list)
    last_error: str = ""
    events: list[dict] = Field(default_factory=list)

    @classmethod
    def start(cls, prompt: str) -> "CycleState":
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        return cls(cycle_id=f"cycle-{ts}", prompt=prompt)

    @property
    def finished(self) -> bool:
        return self.status != "running"

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)
