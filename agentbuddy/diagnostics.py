"""
Stderr diagnostics behind the `errors` and `suggestions` tasks.

Both are pure text transforms: they never touch the filesystem and
return the same answer for the same input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

ERROR_TOKEN = "ERR_"


def extract_error_lines(stderr: str) -> list[str]:
    """Return trimmed stderr lines that carry an error marker, in order."""
    errors = []
    for line in stderr.splitlines():
        if "error" in line.lower() or ERROR_TOKEN in line:
            errors.append(line.strip())
    return errors


# ---------------------------------------------------------------------------
# Fix suggestions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FailureSignature:
    name: str
    trigger: str | None
    pattern: re.Pattern[str]
    render: Callable[[re.Match[str]], str]


def _not_defined(match: re.Match[str]) -> str:
    symbol = match.group(1)
    if symbol == "React":
        return "Did you forget to import React?\n  👉 Add: import React from 'react'"
    return f"'{symbol}' is used before it is defined.\n  👉 Import or declare {symbol}"


SIGNATURES: list[FailureSignature] = [
    FailureSignature(
        name="js_module_not_found",
        trigger="Module not found",
        pattern=re.compile(r"Can't resolve '(.*?)'"),
        render=lambda m: f"Missing dependency: {m.group(1)}\n  👉 Try: npm install {m.group(1)}",
    ),
    FailureSignature(
        name="py_module_not_found",
        trigger="ModuleNotFoundError",
        pattern=re.compile(r"No module named '([\w.]+)'"),
        render=lambda m: (
            f"Missing Python package: {m.group(1).split('.')[0]}\n"
            f"  👉 Try: pip install {m.group(1).split('.')[0]}"
        ),
    ),
    FailureSignature(
        name="not_defined",
        trigger=None,
        pattern=re.compile(r"\b([A-Za-z_$][\w$]*) is not defined"),
        render=_not_defined,
    ),
    FailureSignature(
        name="command_not_found",
        trigger=None,
        pattern=re.compile(r"([\w.-]+): (?:command )?not found"),
        render=lambda m: f"Command '{m.group(1)}' is not installed or not on PATH.\n  👉 Install {m.group(1)} first",
    ),
]


def suggest_fixes(stderr: str) -> list[str]:
    """Match known failure signatures and return one suggestion per match."""
    suggestions: list[str] = []
    for signature in SIGNATURES:
        if signature.trigger and signature.trigger not in stderr:
            continue
        for match in signature.pattern.finditer(stderr):
            suggestion = signature.render(match)
            if suggestion not in suggestions:
                suggestions.append(suggestion)
    return suggestions
