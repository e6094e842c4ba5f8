# src/botflow/runtime/executor.py
"""Loads routine bodies and runs them against an invocation.

Loading is a second, structural check on top of the registry's textual
gate: the body is parsed, walked, and only then executed into a namespace
whose builtins are a fixed allowlist. The resulting coroutine function is
cached per plugin until the body changes.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from botflow.contracts.errors import PluginExecutionError, PluginLoadError
from botflow.core.config import RuntimeSettings
from botflow.core.logging import get_logger
from botflow.runtime.context import Invocation, RuntimeContext
from botflow.runtime.helpers import ROUTINE_HELPERS, checkpoint
from botflow.runtime.http import PluginHttpClient
from botflow.runtime.state import InMemoryStateStore, PluginState, StateStore

if TYPE_CHECKING:
    from botflow.contracts.plugin import CompiledPlugin

type Routine = Callable[..., Awaitable[None]]

ROUTINE_NAME = "execute"
ROUTINE_PARAMETERS = ("ctx", "state", "http", "log", "resolve")
# Bodies may not name anything starting with "__", so they cannot shadow this.
CHECKPOINT_NAME = "__checkpoint__"

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs",
        "bool",
        "dict",
        "enumerate",
        "Exception",
        "float",
        "int",
        "isinstance",
        "KeyError",
        "len",
        "list",
        "max",
        "min",
        "range",
        "round",
        "set",
        "sorted",
        "str",
        "tuple",
        "TypeError",
        "ValueError",
        "zip",
    )
}

FORBIDDEN_NAMES = frozenset(
    {
        "breakpoint",
        "compile",
        "delattr",
        "dir",
        "eval",
        "exec",
        "getattr",
        "globals",
        "help",
        "input",
        "locals",
        "memoryview",
        "object",
        "open",
        "setattr",
        "super",
        "type",
        "vars",
    }
)


class _BodyChecker(ast.NodeVisitor):
    """Collects constructs a routine body may not contain."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def visit_Import(self, node: ast.Import) -> None:
        self.errors.append(f"line {node.lineno}: import statements are forbidden")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self.errors.append(f"line {node.lineno}: import statements are forbidden")

    def visit_Global(self, node: ast.Global) -> None:
        self.errors.append(f"line {node.lineno}: global statements are forbidden")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self.errors.append(f"line {node.lineno}: nonlocal statements are forbidden")

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.errors.append(f"line {node.lineno}: class definitions are forbidden")

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self.errors.append(f"line {node.lineno}: nested functions are forbidden")

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self.errors.append(f"line {node.lineno}: nested functions are forbidden")

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.errors.append(f"line {node.lineno}: lambda expressions are forbidden")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self.errors.append(f"line {node.lineno}: private attribute access {node.attr!r}")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            self.errors.append(f"line {node.lineno}: forbidden name {node.id!r}")
        elif node.id in FORBIDDEN_NAMES:
            self.errors.append(f"line {node.lineno}: forbidden builtin {node.id!r}")


class _LoopCheckpoints(ast.NodeTransformer):
    """Adds an awaited checkpoint to every loop body and list, set or dict comprehension.

    Without a suspension point a busy loop never returns to the event loop,
    and asyncio.wait_for could not cancel it.
    """

    @staticmethod
    def _call() -> ast.Await:
        return ast.Await(ast.Call(ast.Name(CHECKPOINT_NAME, ast.Load()), [], []))

    def _loop(self, node: ast.For | ast.AsyncFor | ast.While) -> ast.AST:
        self.generic_visit(node)
        node.body.insert(0, ast.copy_location(ast.Expr(self._call()), node))
        return node

    visit_For = visit_AsyncFor = visit_While = _loop

    def _comprehension(self, node: ast.ListComp | ast.SetComp | ast.DictComp) -> ast.AST:
        self.generic_visit(node)
        for generator in node.generators:
            generator.ifs.insert(0, ast.copy_location(self._call(), node))
        return node

    visit_ListComp = visit_SetComp = visit_DictComp = _comprehension


def add_checkpoints(tree: ast.Module) -> ast.Module:
    """Return ``tree`` with loop checkpoints added; run only after check_body passes."""
    return ast.fix_missing_locations(_LoopCheckpoints().visit(tree))


def check_body(tree: ast.Module) -> list[str]:
    """Structural problems with a parsed body; empty when it may be loaded."""
    if len(tree.body) != 1 or not isinstance(tree.body[0], ast.AsyncFunctionDef):
        return [f"body must define exactly one 'async def {ROUTINE_NAME}'"]
    routine = tree.body[0]
    errors: list[str] = []
    if routine.name != ROUTINE_NAME:
        errors.append(f"routine must be named {ROUTINE_NAME!r}, not {routine.name!r}")
    parameters = tuple(arg.arg for arg in routine.args.args)
    if parameters != ROUTINE_PARAMETERS or routine.args.vararg or routine.args.kwarg or routine.args.kwonlyargs:
        errors.append(f"routine parameters must be ({', '.join(ROUTINE_PARAMETERS)})")
    if routine.decorator_list:
        errors.append("routine must not be decorated")
    checker = _BodyChecker()
    for statement in routine.body:
        checker.visit(statement)
    return errors + checker.errors


@dataclass
class ExecutionResult:
    """Outcome of one invocation.

    ``response`` is the last payload passed to ``resolve``; node-level
    failures are in ``variables`` as ``<name>_error`` and do not clear
    ``success``.
    """

    plugin_id: str
    response: Any = None
    variables: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: PluginExecutionError | None = None
    duration_ms: float = 0.0

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class PluginRuntime:
    """Runs compiled plugins.

    Example:
        runtime = PluginRuntime()
        result = await runtime.execute(plugin, Invocation(interaction=interaction, client=client))
    """

    def __init__(
        self,
        settings: RuntimeSettings | None = None,
        *,
        store: StateStore | None = None,
        http: PluginHttpClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else RuntimeSettings()
        self._store: StateStore = store if store is not None else InMemoryStateStore()
        self._http = http if http is not None else PluginHttpClient(self._settings.http_timeout_seconds)
        self._logger = logger if logger is not None else get_logger(__name__)
        self._cache: dict[str, tuple[str, Routine]] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def http(self) -> PluginHttpClient:
        return self._http

    def load(self, body: str) -> Routine:
        """Check and execute a body, returning its ``execute`` coroutine function.

        Raises:
            PluginLoadError: If the body does not parse or fails the checks.
        """
        try:
            tree = ast.parse(body, mode="exec")
        except SyntaxError as e:
            raise PluginLoadError(f"Routine body does not parse: {e.msg} (line {e.lineno})") from e

        errors = check_body(tree)
        if errors:
            raise PluginLoadError("Routine body rejected: " + "; ".join(errors))

        tree = add_checkpoints(tree)
        namespace: dict[str, Any] = {"__builtins__": SAFE_BUILTINS, **ROUTINE_HELPERS, CHECKPOINT_NAME: checkpoint}
        try:
            exec(compile(tree, "<plugin>", "exec"), namespace)
        except SyntaxError as e:
            # e.g. too many statically nested blocks
            raise PluginLoadError(f"Routine body does not compile: {e.msg}") from e
        routine: Routine = namespace[ROUTINE_NAME]
        return routine

    def _routine(self, plugin: CompiledPlugin) -> Routine:
        with self._lock:
            cached = self._cache.get(plugin.id)
        if cached is not None and cached[0] == plugin.body:
            return cached[1]
        routine = self.load(plugin.body)
        with self._lock:
            self._cache[plugin.id] = (plugin.body, routine)
        return routine

    def evict(self, plugin_id: str) -> None:
        with self._lock:
            self._cache.pop(plugin_id, None)

    async def execute(self, plugin: CompiledPlugin, invocation: Invocation) -> ExecutionResult:
        """Run a plugin once.

        Timeouts and errors escaping the routine are logged and returned as
        a failed result carrying a PluginExecutionError.

        Raises:
            PluginLoadError: If the plugin body cannot be loaded.
        """
        routine = self._routine(plugin)
        log = self._logger.bind(plugin_id=plugin.id, plugin=plugin.name)
        context = RuntimeContext(invocation, logger=log)
        store = invocation.state if invocation.state is not None else self._store
        result = ExecutionResult(plugin_id=plugin.id, variables=context.variables)

        async def resolve(payload: Any, already_sent: bool = False) -> None:
            result.response = payload
            if already_sent:
                return
            if invocation.auto_reply and (invocation.interaction is not None or invocation.message is not None):
                await context.send_response(payload)

        timeout = self._settings.timeout_seconds
        started = time.perf_counter()
        try:
            await asyncio.wait_for(routine(context, PluginState(store, plugin.id), self._http, log, resolve), timeout)
        except TimeoutError as e:
            result.success = False
            result.error = PluginExecutionError(f"Plugin {plugin.name} timed out after {timeout:g}s")
            result.error.__cause__ = e
        except Exception as e:
            result.success = False
            result.error = PluginExecutionError(f"Plugin {plugin.name} failed: {type(e).__name__}: {e}")
            result.error.__cause__ = e
        result.duration_ms = (time.perf_counter() - started) * 1000

        if result.error is not None:
            log.error("plugin_execution_failed", error=str(result.error), duration_ms=round(result.duration_ms, 2))
        else:
            log.debug("plugin_execution_finished", duration_ms=round(result.duration_ms, 2))
        return result

    async def aclose(self) -> None:
        await self._http.aclose()
