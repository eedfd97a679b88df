"""Autopilot: keep driving the agent loop toward a goal."""

from dataclasses import dataclass
from enum import Enum

from meow_cli.agent import AgentLoop, LoopState
from meow_cli.config import AutopilotConfig
from meow_cli.exceptions import MeowError
from meow_cli.logging import get_logger

log = get_logger(__name__)

CONTINUE_PROMPT = (
    "<AUTO> Continue working toward the goal: {goal}. "
    "If everything is done, reply with: {sentinel}"
)


class AutopilotStatus(str, Enum):
    """AutopilotController state machine."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    HALTED_LIMIT = "halted_limit"
    HALTED_MANUAL = "halted_manual"
    FAILED = "failed"


@dataclass
class AutopilotState:
    """Progress of one autopilot run."""

    goal: str = ""
    step_count: int = 0
    step_budget: int = 5
    sentinel: str = "[DONE]"
    running: bool = False
    status: AutopilotStatus = AutopilotStatus.IDLE
    rounds: int = 0
    last_reply: str = ""
    error: str | None = None


class AutopilotController:
    """Policy wrapper around AgentLoop with a step budget and a completion sentinel."""

    def __init__(self, loop: AgentLoop, settings: AutopilotConfig):
        self.loop = loop
        self.settings = settings
        self.state = AutopilotState(step_budget=settings.steps, sentinel=settings.done_tag)

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.settings.enabled = bool(value)

    def continuation_prompt(self) -> str:
        return CONTINUE_PROMPT.format(goal=self.state.goal, sentinel=self.state.sentinel)

    def _finish(self, status: AutopilotStatus) -> AutopilotState:
        self.state.status = status
        self.state.running = False
        log.info(
            "Autopilot finished",
            status=status.value,
            rounds=self.state.rounds,
            steps=self.state.step_count,
        )
        return self.state

    async def run(self, goal: str, force: bool = False) -> AutopilotState:
        """Run rounds until the sentinel appears or a halting rule fires.

        Args:
            goal: First user message, also repeated in continuation prompts
            force: Continue even when autopilot is globally disabled

        Returns:
            Final AutopilotState
        """
        self.state = AutopilotState(
            goal=goal,
            step_budget=max(1, int(self.settings.steps)),
            sentinel=self.settings.done_tag or "[DONE]",
            running=True,
            status=AutopilotStatus.RUNNING,
        )
        prompt = goal

        while True:
            try:
                result = await self.loop.run_round(prompt)
            except MeowError as e:
                self.state.error = str(e)
                log.error("Autopilot round failed", error=str(e), rounds=self.state.rounds)
                return self._finish(AutopilotStatus.FAILED)

            self.state.rounds += 1
            reply = result.content or ""
            self.state.last_reply = reply

            if self.state.sentinel and self.state.sentinel in reply:
                return self._finish(AutopilotStatus.DONE)

            if result.state is LoopState.HALTED_LIMIT:
                log.warning("Autopilot stopped: agent loop hit its model call limit")
                return self._finish(AutopilotStatus.HALTED_LIMIT)

            if not (self.enabled or force):
                return self._finish(AutopilotStatus.HALTED_MANUAL)

            self.state.step_count += 1
            if self.state.step_count >= self.state.step_budget:
                log.warning("Autopilot step limit reached", limit=self.state.step_budget)
                return self._finish(AutopilotStatus.HALTED_LIMIT)

            prompt = self.continuation_prompt()
