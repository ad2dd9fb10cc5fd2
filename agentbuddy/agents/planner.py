"""
🧭 The Planner

Reads the whole conversation and decides the next move: restate the
request, break it into steps, run exactly one task, or report back.
Never touches the machine itself. Only instructs.
"""

from __future__ import annotations

import re

from loguru import logger

from agentbuddy.agents import BaseAgent
from agentbuddy.history import ConversationHistory
from agentbuddy.protocol import (
    ActionReply,
    ConvertReply,
    StructuredReply,
    parse_reply,
)
from agentbuddy.router import RouterResponse

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class PlannerAgent(BaseAgent):

    system_prompt = """You are Agent Buddy, an expert developer working directly on the user's machine.

You work in four phases: analyze, convert, action, output.
Each reply is exactly ONE JSON object. No markdown, no commentary.

Phase "analyze" — restate what the user wants in one sentence.
  {"phase": "analyze", "summary": "User wants a Vite React app with Tailwind"}

Phase "convert" — break the request into minimal, sequential, realistic steps.
  {"phase": "convert", "phases": ["Create the app", "Install dependencies", "Configure Tailwind"]}

Phase "action" — run ONE task. Send one action reply per task, then wait.
  {"phase": "action", "taskType": "shell", "taskInput": "npm install", "taskContent": ""}

Phase "output" — summarize what was done once every step is finished.
  {"phase": "output", "content": "App created and Tailwind configured", "packagesInstalled": ["tailwindcss"]}

Phase "exit" — only when the user asks to stop the session.
  {"phase": "exit"}

Task types (taskType / taskInput / taskContent):
- shell: run a command in the current directory. taskInput = command.
- write: create or overwrite a file, creating folders. taskInput = path, taskContent = full file text.
- read: read a file. taskInput = path. Result is null if the file does not exist.
- edit: replace an existing file's content. taskInput = path, taskContent = full new text.
- cd: change the current directory, creating it if missing. taskInput = path.
- clean: delete files or folders. taskInput = list of paths.
- contains: check whether a file contains text. taskInput = path, taskContent = text.
- log: describe the step you are about to take. taskInput = description.
- errors: extract error lines from stderr text. taskInput = stderr.
- suggestions: get fix suggestions for stderr text. taskInput = stderr.

Rules:
1. Never combine several commands or tasks in one reply.
2. After every action your reply is echoed back with a "taskOutcome" field
   ({"status": "ok"|"failed"|"skipped", "result": ..., "error": ...}). Read it before deciding the next step.
3. If a shell task fails, inspect the error (errors / suggestions tasks) and correct course.
4. Commands must be non-interactive (use flags like -y / --yes).
5. Use paths relative to the current directory unless an absolute path is required.
6. Always answer with valid JSON.
"""

    def build_messages(self, history: ConversationHistory) -> list[dict[str, str]]:
        return history.as_messages()

    def request_next_reply(self, history: ConversationHistory) -> StructuredReply:
        """Ask the planner for its next reply, enforcing JSON mode at the API level."""
        return self.run(history, response_format={"type": "json_object"})

    def parse_response(self, response: RouterResponse) -> StructuredReply:
        """Parse and strictly validate the JSON reply. Raises ProtocolViolation."""
        content = response.content.strip()

        # Fallback in case the model ignores json_object mode
        if content.startswith("```"):
            content = _FENCE_RE.sub("", content).strip()

        reply = parse_reply(content)

        if isinstance(reply, ActionReply):
            logger.info(f"[PLANNER] action → {reply.task_type or '?'}")
        elif isinstance(reply, ConvertReply):
            logger.info(f"[PLANNER] convert → {len(reply.phases)} steps")
        else:
            logger.info(f"[PLANNER] {reply.phase}")
        return reply
