import json
from pathlib import Path

import pytest

from agentbuddy.agents.planner import PlannerAgent
from agentbuddy.config_loader import AgentConfig, LimitsConfig
from agentbuddy.controller import Controller
from agentbuddy.event_bus import EventBus
from agentbuddy.router import RouterResponse, UsageTracker
from agentbuddy.workspace import WorkingDirectory
from agentbuddy.workspace.tools import TaskExecutor


class ScriptedRouter:
    """Replays canned completion texts in place of the real endpoint."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[list[dict]] = []
        self.response_formats: list[dict | None] = []
        self.usage = UsageTracker()

    def complete(self, messages, response_format=None):
        self.calls.append([dict(m) for m in messages])
        self.response_formats.append(response_format)
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            item = json.dumps(item)
        return RouterResponse(content=item, model="scripted")


@pytest.fixture
def executor(tmp_path: Path) -> TaskExecutor:
    return TaskExecutor(cwd=WorkingDirectory(tmp_path), shell_timeout=30)


@pytest.fixture
def make_controller(tmp_path: Path):
    def _make(replies, max_protocol_retries=2, max_turns_per_cycle=20, bus=None):
        router = ScriptedRouter(replies)
        config = AgentConfig(
            limits=LimitsConfig(
                max_protocol_retries=max_protocol_retries,
                max_turns_per_cycle=max_turns_per_cycle,
            )
        )
        executor = TaskExecutor(cwd=WorkingDirectory(tmp_path), shell_timeout=30)
        controller = Controller(PlannerAgent(router), executor, config=config, bus=bus or EventBus())
        return controller, router

    return _make
