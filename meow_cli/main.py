"""Main entry point for Meow CLI."""

import asyncio
import sys
from pathlib import Path

import typer

from meow_cli import __version__
from meow_cli.agent import AgentContext, AgentLoop
from meow_cli.autopilot import AutopilotController, AutopilotStatus
from meow_cli.cli import TerminalUI
from meow_cli.commands import CommandAction, CommandHandler
from meow_cli.config import Config
from meow_cli.logging import configure_logging, log

app = typer.Typer(help="Meow CLI - a terminal AI agent for files, shell and the web")


def _load_config(
    config: str = "",
    model: str = "",
    profile: str = "",
    yes: bool = False,
    verbose: bool = False,
) -> tuple[Config, Path | None]:
    config_path = Path(config).expanduser() if config else None
    cfg = Config.load(config_path)
    configure_logging(cfg.logging, verbose=verbose)

    if model:
        cfg.model.model = model
    if profile:
        if profile in cfg.profiles:
            cfg.profile = profile
        else:
            log.warning("Unknown profile, keeping current", profile=profile, current=cfg.profile)
    if yes:
        cfg.confirmation.auto_yes = True
    return cfg, config_path


async def run_goal(ui: TerminalUI, autopilot: AutopilotController, goal: str, force: bool) -> None:
    """Run one goal through autopilot and report the outcome."""
    state = await autopilot.run(goal, force=force)
    if state.status is AutopilotStatus.FAILED:
        ui.print_error(state.error or "Request failed")
        return
    if state.last_reply:
        ui.print_message("assistant", state.last_reply)
    if state.status is AutopilotStatus.HALTED_LIMIT:
        ui.print_warning("Stopped: step limit reached.")
    if state.status is AutopilotStatus.DONE and state.rounds > 1:
        ui.print_success(f"Autopilot finished in {state.rounds} rounds.")


async def run_interactive(cfg: Config, config_path: Path | None) -> None:
    """Run the interactive REPL."""
    ui = TerminalUI()
    context = AgentContext.build(cfg, ui.decide, base_path=Path.cwd())
    loop = AgentLoop(context, on_tool_call=ui.print_tool_call, on_tool_result=ui.print_tool_result)
    autopilot = AutopilotController(loop, cfg.autopilot)
    handler = CommandHandler(ui, context, loop, autopilot, config_path=config_path)

    ui.print_welcome()
    if not cfg.model.api_key:
        ui.print_warning("API key not found in config or environment.")
        ui.print_info("Use /key <key> to set one.")

    try:
        while True:
            ui.print_status_line(cfg, context.store.current)
            try:
                line = await ui.prompt()
            except (EOFError, KeyboardInterrupt):
                break

            result = await handler.handle(line)
            if result.action is CommandAction.EXIT:
                break
            if result.action is CommandAction.PROMPT:
                await run_goal(ui, autopilot, result.prompt, force=result.force)
    finally:
        await context.close()
    ui.print_plain("Bye!")


async def run_once(cfg: Config, text: str) -> int:
    """Answer a single prompt and exit."""
    ui = TerminalUI()
    context = AgentContext.build(cfg, ui.decide, base_path=Path.cwd())
    loop = AgentLoop(context, on_tool_call=ui.print_tool_call, on_tool_result=ui.print_tool_result)
    autopilot = AutopilotController(loop, cfg.autopilot)
    try:
        state = await autopilot.run(text)
    finally:
        await context.close()
    if state.status is AutopilotStatus.FAILED:
        ui.print_error(state.error or "Request failed")
        return 1
    ui.print_message("assistant", state.last_reply)
    return 0


@app.command()
def run(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    profile: str = typer.Option("", "-p", "--profile", help="Override profile"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Approve every confirmation"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start an interactive session."""
    cfg, config_path = _load_config(config, model, profile, yes, verbose)
    try:
        asyncio.run(run_interactive(cfg, config_path))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        sys.exit(0)


@app.command()
def ask(
    text: str = typer.Argument(..., help="Prompt to send"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    profile: str = typer.Option("", "-p", "--profile", help="Override profile"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Approve every confirmation"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Send one prompt, print the answer and exit."""
    cfg, _ = _load_config(config, model, profile, yes, verbose)
    raise typer.Exit(code=asyncio.run(run_once(cfg, text)))


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Meow CLI v{__version__}")


if __name__ == "__main__":
    app()
