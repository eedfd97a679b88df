"""Confirmation gate guarding side-effecting tools.

Two policies are supported and selected explicitly through
``confirmation.policy``:

``deny``
    Wait for as long as it takes. Only an explicit ``y``/``yes`` approves;
    any other answer (including an empty line or a closed input stream)
    denies. This is the default.

``approve_on_timeout``
    Explicit answers behave as above, but if no answer arrives within
    ``confirmation.timeout`` seconds the request is approved.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from meow_cli.logging import get_logger

log = get_logger(__name__)


class ConfirmationPolicy(str, Enum):
    """What the gate does when no explicit answer arrives."""

    DENY = "deny"
    APPROVE_ON_TIMEOUT = "approve_on_timeout"


@dataclass(frozen=True)
class ConfirmationRequest:
    """A pending approval question."""

    action: str
    detail: str

    def render(self) -> str:
        return f"CONFIRM: {self.action}\n{self.detail}\n\nProceed? [y/N]: "


@dataclass(frozen=True)
class ConfirmationRecord:
    """Outcome of one gate request."""

    action: str
    approved: bool
    reason: str


# Receives the request and a cancellation event the gate sets once it stops
# waiting; returns the raw answer text, or None when no answer is available.
DecisionSource = Callable[[ConfirmationRequest, asyncio.Event], Awaitable[str | None]]

AFFIRMATIVE_ANSWERS = frozenset({"y", "yes"})


def is_affirmative(answer: str | None) -> bool:
    """Whether an answer counts as explicit approval."""
    return (answer or "").strip().lower() in AFFIRMATIVE_ANSWERS


class ConfirmationGate:
    """Yes/no/timeout approval checkpoint."""

    def __init__(
        self,
        decide: DecisionSource,
        policy: ConfirmationPolicy | str = ConfirmationPolicy.DENY,
        timeout: float | None = None,
        auto_approve: bool = False,
        history_size: int = 100,
    ):
        self._decide = decide
        self.policy = ConfirmationPolicy(policy)
        self.timeout = timeout
        self.auto_approve = auto_approve
        self.history: deque[ConfirmationRecord] = deque(maxlen=history_size)

    def _record(self, action: str, approved: bool, reason: str) -> bool:
        self.history.append(ConfirmationRecord(action=action, approved=approved, reason=reason))
        log.info("Confirmation resolved", action=action, approved=approved, reason=reason)
        return approved

    async def request(self, action: str, detail: str, auto_approve: bool | None = None) -> bool:
        """Ask for approval of an action.

        Args:
            action: Short action label (e.g. "Run shell command")
            detail: What exactly will happen (command, diff, URL)
            auto_approve: Per-call override of the gate-wide auto approval

        Returns:
            True when the action may proceed
        """
        if self.auto_approve if auto_approve is None else auto_approve:
            return self._record(action, True, "auto_approve")

        request = ConfirmationRequest(action=action, detail=detail)
        cancel = asyncio.Event()
        wait_timeout = self.timeout if self.policy is ConfirmationPolicy.APPROVE_ON_TIMEOUT else None
        try:
            answer = await asyncio.wait_for(self._decide(request, cancel), timeout=wait_timeout)
        except asyncio.TimeoutError:
            return self._record(action, True, "timeout")
        except (EOFError, OSError) as e:
            log.warning("Confirmation input unavailable", action=action, error=str(e))
            return self._record(action, False, "no_input")
        finally:
            cancel.set()

        if is_affirmative(answer):
            return self._record(action, True, "confirmed")
        return self._record(action, False, "declined")
