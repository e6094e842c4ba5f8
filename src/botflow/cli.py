# src/botflow/cli.py
"""botflow command line interface.

Entry point for the botflow CLI tool: validate, compile, scan and run
plugin graphs stored as JSON or YAML files.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError

from botflow import __version__
from botflow.contracts.errors import CompileError, GraphValidationError, PluginLoadError
from botflow.contracts.graph import PluginGraph
from botflow.contracts.plugin import CompiledPlugin
from botflow.core.config import BotflowSettings, load_settings

__all__ = ["app"]

_GRAPH_SUFFIXES = frozenset({".json", ".yaml", ".yml"})

app = typer.Typer(
    name="botflow",
    help="botflow: compile visual bot plugin graphs into sandboxed routines.",
    no_args_is_help=True,
)


@dataclass
class _CliState:
    settings: BotflowSettings = field(default_factory=BotflowSettings)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"botflow version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    # Existing environment variables win over .env entries.
    return load_dotenv(override=False)


def _format_error(title: str, message: str, details: list[str] | None = None, hint: str | None = None) -> None:
    """Display a formatted error panel on stderr."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    content = Text()
    content.append(message, style="white")
    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")
    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    Console(stderr=True).print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _settings(ctx: typer.Context) -> BotflowSettings:
    state = ctx.find_object(_CliState)
    return state.settings if state is not None else BotflowSettings()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings_file: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to a settings YAML file.",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose/debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs."),
) -> None:
    """botflow: compile visual bot plugin graphs into sandboxed routines."""
    from botflow.core.logging import configure_logging

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)

    try:
        settings = load_settings(settings_file.expanduser() if settings_file is not None else None)
    except FileNotFoundError:
        _format_error("File Not Found", f"Settings file does not exist: {settings_file}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_error("Configuration Validation Failed", f"Invalid settings in {settings_file}", details=details)
        raise typer.Exit(1) from None

    level = "DEBUG" if verbose else settings.logging.level
    configure_logging(json_output=json_logs or settings.logging.json_output, level=level)
    ctx.obj = _CliState(settings=settings)


def _read_graph(path: Path) -> PluginGraph:
    """Load a ``{nodes, edges}`` document from JSON or YAML.

    Raises:
        typer.Exit: With a formatted error for unreadable or malformed files.
    """
    if not path.exists():
        _format_error("File Not Found", f"Graph file does not exist: {path}")
        raise typer.Exit(1)
    text = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        _format_error("Syntax Error", f"Failed to parse {path.name}", details=[str(e)])
        raise typer.Exit(1) from None
    if not isinstance(payload, dict):
        _format_error("Invalid Graph", f"{path.name} must contain a mapping with 'nodes' and 'edges'")
        raise typer.Exit(1)
    try:
        return PluginGraph.from_payload(payload)
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_error("Invalid Graph", f"{path.name} does not describe a plugin graph", details=details)
        raise typer.Exit(1) from None


def _compile(ctx: typer.Context, path: Path, plugin_id: str | None, name: str | None) -> CompiledPlugin:
    from botflow.compiler import NodeCompiler

    graph = _read_graph(path)
    compiler = NodeCompiler(_settings(ctx).compiler)
    try:
        return compiler.compile_plugin(plugin_id or path.stem, graph.nodes, graph.edges, name=name)
    except GraphValidationError as e:
        _format_error("Validation Failed", f"{path.name} is not a valid plugin graph", details=e.errors)
        raise typer.Exit(1) from None
    except CompileError as e:
        _format_error("Compilation Failed", str(e), hint="Check the node configuration named above.")
        raise typer.Exit(1) from None


@app.command()
def validate(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Plugin graph (JSON or YAML)."),
) -> None:
    """Run the structural and complexity checks without compiling."""
    from botflow.core.dag import GraphValidator

    graph = _read_graph(graph_file)
    validator = GraphValidator(_settings(ctx).compiler)
    errors = [
        *validator.validate(graph.nodes, graph.edges).errors,
        *validator.check_complexity(graph.nodes, graph.edges).errors,
    ]
    if errors:
        _format_error("Validation Failed", f"{graph_file.name} is not a valid plugin graph", details=errors)
        raise typer.Exit(1)
    typer.echo(f"{graph_file.name}: valid ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")


@app.command("compile")
def compile_command(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Plugin graph (JSON or YAML)."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the routine body here instead of stdout."),
    show_options: bool = typer.Option(False, "--show-options", help="List the command options the plugin declares."),
    plugin_id: str | None = typer.Option(None, "--id", help="Plugin id (defaults to the file stem)."),
    name: str | None = typer.Option(None, "--name", help="Plugin display name."),
) -> None:
    """Validate and compile a graph into a routine body."""
    plugin = _compile(ctx, graph_file, plugin_id, name)
    if output is not None:
        output.write_text(plugin.body, encoding="utf-8")
        typer.echo(f"Wrote {output}")
    else:
        typer.echo(plugin.body, nl=False)

    if show_options:
        # Keep stdout to the body alone when the body goes there.
        to_stderr = output is None
        if not plugin.options:
            typer.echo("No command options", err=to_stderr)
        for option in plugin.options:
            flag = "required" if option.required else "optional"
            typer.echo(f"{option.name} ({flag}): {option.description}", err=to_stderr)


@app.command()
def check(
    ctx: typer.Context,
    source_file: Path = typer.Argument(..., help="Routine body, or a plugin graph (JSON or YAML) to compile first."),
) -> None:
    """Scan a routine body with the sandbox gate."""
    from botflow.registry import SandboxGate

    if source_file.suffix.lower() in _GRAPH_SUFFIXES:
        body = _compile(ctx, source_file, None, None).body
    elif source_file.exists():
        body = source_file.read_text(encoding="utf-8")
    else:
        _format_error("File Not Found", f"File does not exist: {source_file}")
        raise typer.Exit(1)

    result = SandboxGate().scan(body)
    if not result.allowed:
        _format_error("Rejected", f"{source_file.name} failed the sandbox gate", details=list(result.violations))
        raise typer.Exit(1)
    typer.echo(f"{source_file.name}: allowed")


def _parse_options(values: list[str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for value in values:
        key, separator, option = value.partition("=")
        if not separator or not key:
            raise typer.BadParameter(f"expected NAME=VALUE, got {value!r}", param_hint="--option")
        options[key] = option
    return options


@app.command()
def run(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Plugin graph (JSON or YAML)."),
    option: list[str] = typer.Option([], "--option", "-o", help="Command option as NAME=VALUE (repeatable)."),
) -> None:
    """Compile a graph and run it once without a bot connection.

    Prints the response and the final variables as JSON. Discord side
    effects fail and are logged, as they would be for a bot without access.
    """
    from botflow.runtime import Invocation, PluginRuntime, SqlStateStore

    plugin = _compile(ctx, graph_file, None, None)
    runtime_settings = _settings(ctx).runtime
    store = (
        SqlStateStore.from_url(runtime_settings.state_database_url)
        if runtime_settings.state_database_url is not None
        else None
    )
    runtime = PluginRuntime(runtime_settings, store=store)
    invocation = Invocation(options=_parse_options(option), auto_reply=False)

    async def invoke() -> Any:
        try:
            return await runtime.execute(plugin, invocation)
        finally:
            await runtime.aclose()

    try:
        result = asyncio.run(invoke())
    except PluginLoadError as e:
        _format_error("Load Failed", str(e))
        raise typer.Exit(1) from None
    finally:
        if store is not None:
            store.close()

    report = {
        "success": result.success,
        "error": None if result.error is None else str(result.error),
        "response": result.response,
        "variables": result.variables,
        "duration_ms": round(result.duration_ms, 2),
    }
    typer.echo(json.dumps(report, indent=2, default=str))
    if not result.success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
