"""
Agent Buddy Controller — The Loop

It is NOT smart. It is deterministic. The planner decides; the
controller only moves between states and keeps the books.

States:
  awaiting-prompt → (planner call) → analyzing | converting | acting
                                   → output (cycle ends) | exit (session ends)

Responsibilities:
  - Read one prompt per cycle; "exit" ends the session
  - Keep the conversation history append-only and in turn order
  - Branch on each reply's phase
  - Execute exactly one task per action reply, record its outcome
  - Bound malformed-reply retries and turns per cycle
  - Turn endpoint failures into a failed cycle, not a crash

It never runs commands or edits files itself. The executor does.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agentbuddy.agents.planner import PlannerAgent
from agentbuddy.config_loader import AgentConfig
from agentbuddy.event_bus import EventBus
from agentbuddy.history import ConversationHistory
from agentbuddy.protocol import (
    ActionReply,
    AnalyzeReply,
    ConvertReply,
    ExitReply,
    OutputReply,
    ProtocolViolation,
    StructuredReply,
    serialize_reply,
)
from agentbuddy.router import EndpointFailure, Router
from agentbuddy.state import CycleState
from agentbuddy.tasks import TaskOutcome, TaskSpecError, build_task
from agentbuddy.workspace import WorkingDirectory
from agentbuddy.workspace.tools import TaskExecutor

console = Console()

EXIT_SENTINEL = "exit"
PROMPT_TEXT = "Enter prompt to generate/edit, or type 'exit' to quit"


class AgentState(str, Enum):
    AWAITING_PROMPT = "awaiting-prompt"
    ANALYZING = "analyzing"
    CONVERTING = "converting"
    ACTING = "acting"
    OUTPUT = "output"
    EXIT = "exit"


class Controller:
    """
    The Agent Buddy loop.

    Owns the conversation history for the whole session and the one
    TaskExecutor (and with it the working directory) every cycle shares.
    """

    def __init__(
        self,
        planner: PlannerAgent,
        executor: TaskExecutor,
        config: AgentConfig | None = None,
        bus: EventBus | None = None,
        history: ConversationHistory | None = None,
    ):
        self.planner = planner
        self.executor = executor
        self.config = config or AgentConfig()
        self.bus = bus or EventBus()
        self.history = history or planner.new_history()
        self.state = AgentState.AWAITING_PROMPT
        self._cycle: CycleState | None = None

    @classmethod
    def from_config(
        cls,
        config: AgentConfig,
        api_key: str,
        work_dir: Path | None = None,
        bus: EventBus | None = None,
    ) -> "Controller":
        router = Router(config.endpoint, api_key)
        executor = TaskExecutor(
            cwd=WorkingDirectory(work_dir),
            shell_timeout=config.limits.shell_timeout,
            max_result_chars=config.limits.max_result_chars,
        )
        return cls(PlannerAgent(router), executor, config=config, bus=bus)

    # -----------------------------------------------------------------------
    # Outer loop
    # -----------------------------------------------------------------------

    def run_session(self, read_prompt: Callable[[], str]) -> list[CycleState]:
        """Prompt → cycle → prompt ... until the exit sentinel or an exit reply."""
        cycles: list[CycleState] = []

        while True:
            self.state = AgentState.AWAITING_PROMPT
            try:
                prompt = read_prompt().strip()
            except (EOFError, KeyboardInterrupt):
                prompt = EXIT_SENTINEL

            if not prompt:
                continue

            if prompt == EXIT_SENTINEL:
                self.state = AgentState.EXIT
                self._log_event("session_exit", {"source": "user"})
                self._print_goodbye()
                break

            cycle = self.run_cycle(prompt)
            cycles.append(cycle)
            if cycle.status == "exit":
                break

        return cycles

    # -----------------------------------------------------------------------
    # Inner loop
    # -----------------------------------------------------------------------

    def run_cycle(self, prompt: str) -> CycleState:
        """Run one prompt until the planner reports output or exit."""
        cycle = CycleState.start(prompt)
        self._cycle = cycle
        limits = self.config.limits

        self.history.append_user(prompt)
        self._log_event("cycle_started", {"prompt": prompt})

        try:
            while not cycle.finished:
                if cycle.turns >= limits.max_turns_per_cycle:
                    cycle.status = "turn_limit"
                    cycle.last_error = f"Stopped after {limits.max_turns_per_cycle} turns without output"
                    console.print(f"[yellow]⚠ {cycle.last_error}[/]")
                    break

                reply = self._next_reply(cycle)
                if reply is None:
                    break

                cycle.turns += 1
                self._dispatch(reply, cycle)

        except EndpointFailure as e:
            logger.error(f"[LOOP] Planner endpoint failed: {e}")
            console.print(f"[red]💥 Planner unavailable: {escape(str(e))}[/]")
            cycle.status = "endpoint_failed"
            cycle.last_error = str(e)

        finally:
            if cycle.status != "exit":
                self.state = AgentState.AWAITING_PROMPT
            self._log_event("cycle_finished", {
                "status": cycle.status,
                "turns": cycle.turns,
                "tasks_executed": cycle.tasks_executed,
            })
            self._cycle = None

        return cycle

    def _next_reply(self, cycle: CycleState) -> StructuredReply | None:
        """
        Ask the planner for a reply, retrying malformed ones.

        Malformed replies are never added to the history. Returns None
        once the retry bound is exhausted.
        """
        max_retries = self.config.limits.max_protocol_retries
        attempt = 0

        while True:
            try:
                reply = self.planner.request_next_reply(self.history)
            except ProtocolViolation as e:
                attempt += 1
                cycle.protocol_failures += 1
                logger.warning(f"[LOOP] Malformed planner reply ({attempt}/{max_retries + 1}): {e}")
                self._log_event("protocol_violation", {
                    "attempt": attempt,
                    "error": str(e),
                    "raw": e.raw[:500],
                })
                if attempt > max_retries:
                    cycle.status = "protocol_failed"
                    cycle.last_error = str(e)
                    console.print(
                        f"[red]🚫 Planner sent {attempt} malformed replies in a row. "
                        f"Giving up on this prompt.[/]"
                    )
                    return None
                continue

            self._log_event("reply_received", {"phase": reply.phase})
            return reply

    def _dispatch(self, reply: StructuredReply, cycle: CycleState) -> None:
        if isinstance(reply, AnalyzeReply):
            self.state = AgentState.ANALYZING
            cycle.summary = reply.summary
            console.print(f"\n[bold magenta]🔎 Analyze:[/] {escape(reply.summary)}")
            self._record(reply)

        elif isinstance(reply, ConvertReply):
            self.state = AgentState.CONVERTING
            cycle.plan_steps = list(reply.phases)
            self._print_plan(reply.phases)
            self._record(reply)

        elif isinstance(reply, ActionReply):
            self.state = AgentState.ACTING
            self._record(self._act(reply, cycle))

        elif isinstance(reply, OutputReply):
            self.state = AgentState.OUTPUT
            cycle.status = "completed"
            if reply.content:
                cycle.summary = reply.content
            cycle.packages_installed = list(reply.packages_installed)
            self._record(reply)
            self._print_output(reply)

        elif isinstance(reply, ExitReply):
            self.state = AgentState.EXIT
            cycle.status = "exit"
            self._log_event("session_exit", {"source": "planner"})
            self._print_goodbye()

    def _act(self, reply: ActionReply, cycle: CycleState) -> ActionReply:
        """Execute the one task an action reply names and attach its outcome."""
        if not reply.has_task:
            logger.warning("[LOOP] Action reply without taskType/taskInput, nothing executed")
            outcome = TaskOutcome(status="skipped", error="Missing taskType or taskInput")
            return reply.model_copy(update={"task_outcome": outcome})

        try:
            task = build_task(reply.task_type, reply.task_input, reply.task_content)
        except TaskSpecError as e:
            logger.warning(f"[LOOP] {e}")
            outcome = TaskOutcome(status="skipped", error=str(e))
            return reply.model_copy(update={"task_outcome": outcome})

        outcome = self.executor.run(task)
        cycle.tasks_executed += 1

        if outcome.status == "failed":
            cycle.task_failures += 1
            cycle.last_error = outcome.error or ""
            self._log_event("task_failed", {
                "kind": task.kind,
                "exit_code": outcome.exit_code,
                "error": (outcome.error or "")[:500],
            })
        else:
            self._log_event("task_executed", {"kind": task.kind})

        return reply.model_copy(update={"task_outcome": outcome})

    def _record(self, reply: StructuredReply) -> None:
        self.history.append_assistant(serialize_reply(reply))

    # -----------------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------------

    def _print_plan(self, steps: list[str]) -> None:
        table = Table(title="Plan", border_style="magenta")
        table.add_column("#", style="dim")
        table.add_column("Step")
        for i, step in enumerate(steps, 1):
            table.add_row(str(i), escape(step))
        console.print(table)

    def _print_output(self, reply: OutputReply) -> None:
        body = escape(reply.content) if reply.content else "[dim](no summary)[/]"
        if reply.packages_installed:
            body += "\n\n[bold]Packages:[/] " + escape(", ".join(reply.packages_installed))
        console.print(Panel(body, title="✅ Output", border_style="green"))

    def _print_goodbye(self) -> None:
        console.print("\n[bold black on bright_magenta] Thanks for using Agent Buddy! See you later [/] ✌️\n")

    # -----------------------------------------------------------------------
    # Utilities
    # -----------------------------------------------------------------------

    def _log_event(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        cycle_id = self._cycle.cycle_id if self._cycle else None
        event = {
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "cycle_id": cycle_id,
            "data": data or {},
        }
        if self._cycle:
            self._cycle.events.append(event)
        self.bus.emit(event_type, data or {}, cycle_id=cycle_id)
