"""
Conversation history — the planner's context window.

Append-only: one system message first, then user prompts and the
assistant replies the loop accepted, in turn order. Nothing is ever
removed or rewritten.
"""

from __future__ import annotations

from typing import Iterator, Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ConversationHistory:
    """Ordered log of role-tagged messages, seeded with the system instruction."""

    def __init__(self, system_prompt: str):
        self._messages: list[Message] = [Message(role="system", content=system_prompt)]

    @property
    def system_prompt(self) -> str:
        return self._messages[0].content

    def append(self, role: Role, content: str) -> Message:
        if role == "system":
            raise ValueError("The system message is fixed at initialization")
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def append_user(self, content: str) -> Message:
        return self.append("user", content)

    def append_assistant(self, content: str) -> Message:
        return self.append("assistant", content)

    def as_messages(self) -> list[dict[str, str]]:
        """Plain chat messages [{"role": ..., "content": ...}] for the endpoint."""
        return [m.model_dump() for m in self._messages]

    @property
    def last(self) -> Message:
        return self._messages[-1]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]
