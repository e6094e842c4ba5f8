# src/botflow/registry/gate.py
"""Sandbox gate: a textual denylist scan over routine bodies.

This is a last line of defense, not a sandbox. It catches bodies that try
to load modules, reach the process or filesystem, evaluate code
dynamically or mutate globals. The compiler only ever emits from a closed
set of templates, and PluginRuntime.load() applies a structural check of
its own; never rely on this scan alone for bodies from elsewhere.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Module loading, process access and dynamic evaluation in script-style bodies.
_SCRIPT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"require\(",
        r"import\s+",
        r"process\.",
        r"child_process",
        r"\bfs\.",
        r"\beval\(",
        r"__dirname",
        r"__filename",
        r"global\.",
    )
)

_PYTHON_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Case-sensitive so prose such as "function (x)" is not flagged.
    re.compile(r"\bFunction\s*\("),
    re.compile(r"__import__"),
    re.compile(r"\bexec\("),
    re.compile(r"\bcompile\("),
    re.compile(r"\bopen\("),
    re.compile(r"subprocess"),
    re.compile(r"\bos\."),
    re.compile(r"\bsys\."),
    re.compile(r"\bglobals\("),
    re.compile(r"\blocals\("),
    re.compile(r"\bgetattr\("),
    re.compile(r"\bsetattr\("),
    re.compile(r"\bdelattr\("),
    re.compile(r"__builtins__"),
    re.compile(r"__class__"),
    re.compile(r"__subclasses__"),
    re.compile(r"__globals__"),
    re.compile(r"^\s*(?:global|nonlocal)\s+\w", re.MULTILINE),
)

DENYLIST: tuple[re.Pattern[str], ...] = _SCRIPT_PATTERNS + _PYTHON_PATTERNS


@dataclass(frozen=True, slots=True)
class GateResult:
    violations: tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        return not self.violations


class SandboxGate:
    """Scans body text against the denylist. Never raises."""

    def __init__(self, patterns: tuple[re.Pattern[str], ...] = DENYLIST) -> None:
        self._patterns = patterns

    def scan(self, body: str) -> GateResult:
        violations = tuple(
            f"Forbidden pattern detected: {pattern.pattern}" for pattern in self._patterns if pattern.search(body)
        )
        return GateResult(violations)
