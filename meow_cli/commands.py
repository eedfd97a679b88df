"""Slash command handling for the interactive REPL."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from meow_cli.agent import AgentContext, AgentLoop
from meow_cli.autopilot import AutopilotController
from meow_cli.cli import TerminalUI
from meow_cli.exceptions import SessionError
from meow_cli.logging import get_logger
from meow_cli.tools import ToolName

log = get_logger(__name__)


def apply_aliases(text: str, aliases: dict[str, str]) -> str:
    """Expand a leading alias (`/ls src` -> `/list src`)."""
    for alias, target in aliases.items():
        if text == alias or text.startswith(alias + " "):
            return target + text[len(alias):]
    return text


def parse_kv(text: str) -> dict[str, str]:
    """Parse whitespace-separated `key:value` pairs; malformed pairs are skipped."""
    params: dict[str, str] = {}
    for pair in text.split():
        key, sep, value = pair.partition(":")
        if sep and key and value:
            params[key] = value
    return params


def render_template(templates: dict[str, str], name: str, params: dict[str, str]) -> str | None:
    """Fill `{key}` placeholders of a named template, or None if unknown."""
    template = templates.get(name)
    if template is None:
        return None
    text = template
    for key, value in params.items():
        text = text.replace("{" + key + "}", value)
    return text


class CommandAction(str, Enum):
    HANDLED = "handled"
    PROMPT = "prompt"
    EXIT = "exit"


@dataclass
class CommandResult:
    """What the REPL should do after a line of input."""

    action: CommandAction
    prompt: str = ""
    force: bool = False


HANDLED = CommandResult(CommandAction.HANDLED)


class CommandHandler:
    """Dispatches REPL input lines to command handlers."""

    def __init__(
        self,
        ui: TerminalUI,
        context: AgentContext,
        loop: AgentLoop,
        autopilot: AutopilotController,
        config_path: Path | None = None,
    ):
        self.ui = ui
        self.context = context
        self.loop = loop
        self.autopilot = autopilot
        self.config_path = config_path
        self._commands: dict[str, Callable[[str], Awaitable[CommandResult]]] = {
            "/help": self._help,
            "/exit": self._exit,
            "/clear": self._clear,
            "/config": self._config,
            "/saveconfig": self._saveconfig,
            "/stats": self._stats,
            "/list": self._list,
            "/read": self._read,
            "/shell": self._shell,
            "/profile": self._profile,
            "/model": self._model,
            "/temp": self._temp,
            "/key": self._key,
            "/url": self._url,
            "/autopilot": self._autopilot,
            "/auto": self._auto,
            "/session": self._session,
            "/sessions": self._sessions,
            "/new": self._new,
            "/switch": self._switch,
            "/delete": self._delete,
            "/rename": self._rename,
            "/export": self._export,
            "/import": self._import,
            "/template": self._template,
            "/alias": self._alias,
        }

    @property
    def config(self):
        return self.context.config

    @property
    def store(self):
        return self.context.store

    async def handle(self, line: str) -> CommandResult:
        """Handle one input line.

        Plain text becomes a PROMPT result; commands are executed here.
        """
        text = apply_aliases(line.strip(), self.config.aliases)
        if not text:
            return HANDLED
        if not text.startswith("/"):
            return CommandResult(CommandAction.PROMPT, prompt=text)

        command, _, args = text.partition(" ")
        handler = self._commands.get(command.lower())
        if handler is None:
            self.ui.print_error(f"Unknown command: {command}. Type /help for the list.")
            return HANDLED
        log.debug("Slash command", command=command)
        try:
            return await handler(args.strip())
        except SessionError as e:
            self.ui.print_error(str(e))
            return HANDLED
        except OSError as e:
            log.error("Command failed", command=command, error=str(e))
            self.ui.print_error(f"{command} failed: {e}")
            return HANDLED

    def _save_config(self) -> Path:
        return self.config.save(self.config_path)

    async def _help(self, args: str) -> CommandResult:
        self.ui.print_help()
        return HANDLED

    async def _exit(self, args: str) -> CommandResult:
        return CommandResult(CommandAction.EXIT)

    async def _clear(self, args: str) -> CommandResult:
        self.store.clear()
        self.ui.print_success("History cleared.")
        return HANDLED

    async def _config(self, args: str) -> CommandResult:
        self.ui.print_config(self.config)
        return HANDLED

    async def _saveconfig(self, args: str) -> CommandResult:
        path = self._save_config()
        self.ui.print_success(f"Configuration saved to {path}")
        return HANDLED

    async def _stats(self, args: str) -> CommandResult:
        self.ui.print_stats(
            session=self.store.current,
            message_count=len(self.store.current_session.messages),
            turns=self.loop.turns,
            usage=self.loop.total_usage,
            confirmations=list(self.context.gate.history),
        )
        return HANDLED

    async def _run_tool(self, name: ToolName, arguments: dict[str, str]) -> CommandResult:
        result = await self.context.tools.execute(name.value, arguments)
        if result.success:
            self.ui.print_plain(result.to_text())
        else:
            self.ui.print_error(result.to_text())
        return HANDLED

    async def _list(self, args: str) -> CommandResult:
        return await self._run_tool(ToolName.LIST_DIR, {"path": args or "."})

    async def _read(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /read <file>")
            return HANDLED
        return await self._run_tool(ToolName.READ_FILE, {"path": args})

    async def _shell(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /shell <cmd>")
            return HANDLED
        return await self._run_tool(ToolName.RUN_SHELL, {"cmd": args})

    async def _profile(self, args: str) -> CommandResult:
        name = args.split()[0] if args else ""
        if not name:
            self.ui.print_info(f"Current profile: {self.config.profile}")
            self.ui.print_info(f"Available: {', '.join(self.config.profiles)}")
        elif name in self.config.profiles:
            self.config.profile = name
            self.ui.print_success(f"Switched profile to: {name}")
        else:
            self.ui.print_error(f"Profile '{name}' not found.")
        return HANDLED

    async def _model(self, args: str) -> CommandResult:
        name = args.split()[0] if args else ""
        if not name:
            self.ui.print_info(f"Current model: {self.config.model.model}")
            return HANDLED
        self.config.model.model = name
        self.context.provider.reconfigure(self.config.model)
        self.ui.print_success(f"Model: {name}")
        return HANDLED

    async def _temp(self, args: str) -> CommandResult:
        profile = self.config.active_profile()
        if not args:
            self.ui.print_info(f"Temperature: {profile.temperature}")
            return HANDLED
        try:
            value = float(args.split()[0])
        except ValueError:
            value = -1.0
        if not 0.0 <= value <= 2.0:
            self.ui.print_error("Temperature must be between 0.0 and 2.0")
            return HANDLED
        profile.temperature = value
        self.ui.print_success(f"Temperature: {value}")
        return HANDLED

    async def _key(self, args: str) -> CommandResult:
        key = args.split()[0] if args else ""
        if not key:
            self.ui.print_error("Usage: /key <key>")
            return HANDLED
        self.config.model.api_key = key
        self.context.provider.reconfigure(self.config.model)
        self._save_config()
        self.ui.print_success("API key saved.")
        return HANDLED

    async def _url(self, args: str) -> CommandResult:
        url = args.split()[0] if args else ""
        if not url:
            self.ui.print_error("Usage: /url <url>")
            return HANDLED
        self.config.model.api_base = url
        self.context.provider.reconfigure(self.config.model)
        self._save_config()
        self.ui.print_success("API base URL saved.")
        return HANDLED

    async def _autopilot(self, args: str) -> CommandResult:
        parts = args.split()
        sub = parts[0].lower() if parts else "status"
        settings = self.autopilot.settings
        if sub == "status":
            state = "ON" if self.autopilot.enabled else "OFF"
            self.ui.print_info(f"Autopilot: {state}, steps: {settings.steps}")
        elif sub == "on":
            self.autopilot.enabled = True
            self.ui.print_success("Autopilot enabled.")
        elif sub == "off":
            self.autopilot.enabled = False
            self.ui.print_success("Autopilot disabled.")
        elif sub == "steps" and len(parts) > 1 and parts[1].isdigit():
            settings.steps = max(1, int(parts[1]))
            self.ui.print_success(f"Step limit: {settings.steps}")
        else:
            self.ui.print_error("Usage: /autopilot on|off|steps N|status")
        return HANDLED

    async def _auto(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Give a goal: /auto <goal>")
            return HANDLED
        return CommandResult(CommandAction.PROMPT, prompt=args, force=True)

    async def _session(self, args: str) -> CommandResult:
        session = self.store.current_session
        self.ui.print_info(f"Session: {session.name} ({len(session.messages)} messages)")
        return HANDLED

    async def _sessions(self, args: str) -> CommandResult:
        for name in self.store.list_names():
            marker = "*" if name == self.store.current else " "
            self.ui.print_plain(f"{marker} {name}")
        return HANDLED

    async def _new(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /new <name>")
            return HANDLED
        self.store.create(args)
        self.store.switch(args)
        self.ui.print_success(f"Created session: {args}")
        return HANDLED

    async def _switch(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /switch <name>")
            return HANDLED
        self.store.switch(args)
        self.ui.print_success(f"Switched to session: {args}")
        return HANDLED

    async def _delete(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /delete <name>")
            return HANDLED
        self.store.delete(args)
        self.ui.print_success(f"Deleted session: {args}. Current: {self.store.current}")
        return HANDLED

    async def _rename(self, args: str) -> CommandResult:
        parts = args.split()
        if len(parts) != 2:
            self.ui.print_error("Usage: /rename <old> <new>")
            return HANDLED
        self.store.rename(parts[0], parts[1])
        self.ui.print_success(f"Renamed {parts[0]} -> {parts[1]}")
        return HANDLED

    async def _export(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /export <file>")
            return HANDLED
        path = self.store.export_to_file(args)
        self.ui.print_success(f"Sessions exported to {path}")
        return HANDLED

    async def _import(self, args: str) -> CommandResult:
        if not args:
            self.ui.print_error("Usage: /import <file>")
            return HANDLED
        self.store.import_from_file(args)
        self.ui.print_success(f"Imported {len(self.store)} sessions. Current: {self.store.current}")
        return HANDLED

    async def _template(self, args: str) -> CommandResult:
        name, _, rest = args.partition(" ")
        if not name:
            self.ui.print_info(f"Templates: {', '.join(self.config.templates)}")
            return HANDLED
        text = render_template(self.config.templates, name, parse_kv(rest))
        if text is None:
            self.ui.print_error(f"Template '{name}' not found.")
            return HANDLED
        self.ui.print_info(f"Using template:\n{text}")
        return CommandResult(CommandAction.PROMPT, prompt=text)

    async def _alias(self, args: str) -> CommandResult:
        for alias, target in self.config.aliases.items():
            self.ui.print_plain(f"{alias} -> {target}")
        return HANDLED
