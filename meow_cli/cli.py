"""Terminal presentation for Meow CLI."""

import asyncio
import io
import json
import sys
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from meow_cli.config import Config
from meow_cli.confirmation import ConfirmationRecord, ConfirmationRequest
from meow_cli.logging import get_logger

log = get_logger(__name__)

HELP_SECTIONS: list[tuple[str, list[tuple[str, str]]]] = [
    ("Commands", [
        ("/help", "Show this help"),
        ("/exit", "Quit"),
        ("/clear", "Clear the current session"),
        ("/config", "Show the current configuration"),
        ("/saveconfig", "Save settings to disk"),
        ("/stats", "Session statistics"),
    ]),
    ("Files and system", [
        ("/list <path>", "List files in a directory"),
        ("/read <file>", "Print a file"),
        ("/shell <cmd>", "Run a shell command"),
    ]),
    ("Sessions", [
        ("/session", "Show the current session"),
        ("/sessions", "List sessions"),
        ("/new <name>", "Create and switch to a session"),
        ("/switch <name>", "Switch to a session"),
        ("/delete <name>", "Delete a session"),
        ("/rename <old> <new>", "Rename a session"),
        ("/export <file>", "Export all sessions to JSON"),
        ("/import <file>", "Import sessions from JSON"),
    ]),
    ("Model settings", [
        ("/profile [name]", "Switch profile"),
        ("/model [name]", "Switch model"),
        ("/temp [0.0-2.0]", "Sampling temperature of the active profile"),
        ("/key <key>", "Set the API key"),
        ("/url <url>", "Set the API base URL"),
    ]),
    ("Autopilot", [
        ("/autopilot on|off", "Enable or disable autopilot"),
        ("/autopilot steps N", "Step limit"),
        ("/autopilot status", "Autopilot status"),
        ("/auto <goal>", "Run autopilot toward a goal"),
    ]),
    ("Misc", [
        ("/template <name> k:v", "Use a prompt template"),
        ("/alias", "List aliases"),
    ]),
]


class TerminalUI:
    """Terminal UI using Rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(highlight=False)
        self._pending_line: asyncio.Future[str] | None = None

    def print_welcome(self) -> None:
        self.console.print(Panel.fit("[bold magenta]MEOW CLI[/bold magenta]", border_style="magenta"))
        self.console.rule(style="grey50")

    def print_help(self) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        for title, rows in HELP_SECTIONS:
            table.add_row(f"[bold]{title}[/bold]", "")
            for command, description in rows:
                table.add_row(f"  {command}", description)
        self.console.print(Panel(table, title="Meow CLI help", border_style="magenta"))

    def print_status_line(self, config: Config, session: str) -> None:
        mode = "[magenta]AUTO[/magenta]" if config.autopilot.enabled else "[grey50]MANUAL[/grey50]"
        stamp = datetime.now().strftime("%H:%M")
        self.console.print(
            f"[dim]{stamp}  |  model {escape(config.model.model)}  |  profile {escape(config.profile)}"
            f"  |  session {escape(session)}  |[/dim] {mode}"
        )

    def print_message(self, role: str, content: str) -> None:
        if role == "assistant":
            self.console.print(Markdown(content or ""))
            self.console.rule(style="grey50")
            return
        self.console.print(f"[bold]{role}:[/bold] {escape(content)}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[cyan]i {escape(message)}[/cyan]")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✔ {escape(message)}[/green]")

    def print_warning(self, warning: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")

    def print_error(self, error: str) -> None:
        self.console.print(f"[red]✖ {escape(error)}[/red]")

    def print_plain(self, text: str) -> None:
        self.console.print(text, markup=False)

    def print_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> None:
        args = json.dumps(arguments, ensure_ascii=False)
        if len(args) > 200:
            args = args[:200] + "..."
        self.console.print(f"[dim]> {tool_name} {escape(args)}[/dim]")

    def print_tool_result(self, tool_name: str, result: str) -> None:
        preview = result if len(result) <= 500 else result[:500] + "..."
        self.console.print(preview, style="dim", markup=False)

    def print_config(self, config: Config) -> None:
        data = config.model_dump()
        if data["model"].get("api_key"):
            data["model"]["api_key"] = "***"
        if data["tools"]["web_search"].get("api_key"):
            data["tools"]["web_search"]["api_key"] = "***"
        self.console.print_json(json.dumps(data, ensure_ascii=False))

    def print_stats(
        self,
        session: str,
        message_count: int,
        turns: int,
        usage: dict[str, int],
        confirmations: list[ConfirmationRecord],
    ) -> None:
        approved = sum(1 for item in confirmations if item.approved)
        table = Table(show_header=False, box=None)
        table.add_row("Session", session)
        table.add_row("Messages", str(message_count))
        table.add_row("Turns", str(turns))
        table.add_row("Prompt tokens", str(usage.get("prompt_tokens", 0)))
        table.add_row("Completion tokens", str(usage.get("completion_tokens", 0)))
        table.add_row("Total tokens", str(usage.get("total_tokens", 0)))
        table.add_row("Confirmations", f"{approved} approved / {len(confirmations) - approved} denied")
        self.console.print(table)

    async def prompt(self, prompt_text: str = "meow › ") -> str:
        """Read one input line without blocking the event loop."""
        self.console.print(f"[bold green]{escape(prompt_text)}[/bold green]", end="")
        line = await self._read_line_in_thread()
        if not line:
            raise EOFError("stdin closed")
        return line.rstrip("\n")

    def _stdin_line(self) -> "asyncio.Future[str]":
        """The one threaded stdin read in flight, started on demand.

        A blocking readline cannot be interrupted, so a read left behind by a
        cancelled confirmation stays pending and its line goes to the next
        reader. A line that arrived while nobody was waiting is dropped.
        """
        stale = self._pending_line
        if stale is not None and stale.done():
            self._pending_line = None
            if not stale.cancelled() and stale.exception() is None:
                log.debug("Dropping input typed after a confirmation stopped waiting", line=stale.result()[:80])
        if self._pending_line is None:
            self._pending_line = asyncio.ensure_future(asyncio.to_thread(sys.stdin.readline))
        return self._pending_line

    async def _read_line_in_thread(self) -> str:
        future = self._stdin_line()
        try:
            line = await asyncio.shield(future)
        except Exception:
            self._pending_line = None
            raise
        self._pending_line = None
        return line

    async def decide(self, request: ConfirmationRequest, cancel: asyncio.Event) -> str | None:
        """Confirmation decision source reading one line from stdin."""
        self.console.print()
        self.console.print(f"⚠ {request.render()}", style="yellow", end="", markup=False)

        loop = asyncio.get_running_loop()
        try:
            fd = sys.stdin.fileno()
        except (AttributeError, ValueError, io.UnsupportedOperation):
            fd = None

        if fd is not None and self._pending_line is None:
            answer: asyncio.Future[str] = loop.create_future()

            def _on_stdin_ready() -> None:
                if answer.done() or cancel.is_set():
                    return
                line = sys.stdin.readline()
                if line:
                    answer.set_result(line)
                else:
                    answer.set_exception(EOFError("stdin closed"))

            try:
                loop.add_reader(fd, _on_stdin_ready)
            except (NotImplementedError, OSError, ValueError) as e:
                log.debug("stdin reader unavailable, reading in a thread", error=str(e))
            else:
                try:
                    return await answer
                except asyncio.CancelledError:
                    self.console.print("\n[dim](no answer)[/dim]")
                    raise
                finally:
                    loop.remove_reader(fd)

        try:
            return await self._read_line_in_thread()
        except asyncio.CancelledError:
            self.console.print("\n[dim](no answer)[/dim]")
            raise
