"""
Agent Buddy — a conversational agent loop that turns requests into
shell commands and file edits, one planner-approved task at a time.
"""

from agentbuddy.identity import __codename__, __tagline__, __version__

__all__ = ["__codename__", "__tagline__", "__version__"]
