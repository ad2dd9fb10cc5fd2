"""
Agent Buddy Agents

An agent is:
  - A system prompt
  - A message builder over the conversation history
  - A strict output parser

Agents hold no conversation state. The history belongs to the controller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from agentbuddy.history import ConversationHistory
from agentbuddy.router import Router, RouterResponse


class BaseAgent(ABC):
    """
    Base class for Agent Buddy agents.

    Subclasses define:
      - system_prompt: str — the fixed first message of the history
      - build_messages() — constructs the chat messages
      - parse_response() — extracts structured output
    """

    system_prompt: str = "You are a helpful assistant."

    def __init__(self, router: Router):
        self.router = router

    def run(self, history: ConversationHistory, **kwargs) -> Any:
        """Execute the agent: build messages → call model → parse."""
        messages = self.build_messages(history)
        response = self.router.complete(messages=messages, **kwargs)
        return self.parse_response(response)

    def new_history(self) -> ConversationHistory:
        return ConversationHistory(self.system_prompt)

    @abstractmethod
    def build_messages(self, history: ConversationHistory) -> list[dict[str, str]]:
        """Build the message list for the LLM call."""
        ...

    @abstractmethod
    def parse_response(self, response: RouterResponse) -> Any:
        """Parse the LLM response into structured output."""
        ...
