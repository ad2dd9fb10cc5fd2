"""
Agent Buddy CLI — The Interface

    agentbuddy                 (start the prompt loop in the current directory)
    agentbuddy --verbose       (debug logging)
    agentbuddy --trace run.jsonl
                               (append every loop event to a JSONL file)

Type a request at the prompt; type 'exit' to quit.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.panel import Panel

from agentbuddy.audit_logger import AuditLogger
from agentbuddy.config_loader import ConfigError, load_config, resolve_api_key
from agentbuddy.controller import PROMPT_TEXT, Controller
from agentbuddy.event_bus import EventBus
from agentbuddy.identity import BANNER, __codename__, __tagline__, __version__

# Load .env from current directory or home
load_dotenv()
load_dotenv(Path.home() / ".agentbuddy" / ".env")

app = typer.Typer(
    name="agentbuddy",
    help=f"{__codename__} — {__tagline__}",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Banner
# ---------------------------------------------------------------------------


def _print_banner():
    console.print(f"[bright_magenta]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------

@app.command()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    trace: Optional[Path] = typer.Option(None, "--trace", help="Append loop events to this JSONL file"),
):
    """Describe what you want; the agent plans it and runs it step by step."""
    _print_banner()
    _configure_logging(verbose)

    work_dir = Path.cwd()
    try:
        config = load_config(work_dir)
        api_key = resolve_api_key(config)
    except ConfigError as e:
        console.print(f"[red]🚫 {e}[/]")
        raise typer.Exit(1)

    bus = EventBus()
    if trace:
        AuditLogger(trace, bus)

    controller = Controller.from_config(config, api_key, work_dir=work_dir, bus=bus)

    try:
        controller.run_session(_read_prompt)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚡ Interrupted.[/]")
        raise typer.Exit(130)

    _print_usage_summary(controller)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_prompt() -> str:
    return console.input(f"\n[bold black on bright_yellow] >> {PROMPT_TEXT} [/] ")


def _print_usage_summary(controller: Controller) -> None:
    summary = controller.planner.router.usage.summary()
    if not summary["call_count"]:
        return
    console.print(Panel(
        f"Tokens: {summary['total_tokens']:,} / "
        f"Cost: ${summary['estimated_cost']:.4f} / "
        f"Calls: {summary['call_count']}",
        title="💸 Usage",
        border_style="green",
    ))


def _console_sink(msg) -> None:
    console.print(msg.rstrip("\n"), style="dim", highlight=False, markup=False)


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(_console_sink, level="DEBUG", format="{time:HH:mm:ss} | {level:<7} | {message}")
    else:
        logger.add(_console_sink, level="WARNING", format="{message}")


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
