"""
Authentication event hooks.

Hosts extend the login flow by registering callbacks that run before or
after an authentication event. Hooks run in registration order. Each one
returns HookResult.CONTINUE to let the flow go on, or short_circuit(response)
to end the request with that response; the first short-circuit wins and the
remaining hooks are not called.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional

from starlette.responses import Response

if TYPE_CHECKING:
    from .orchestrator import FlowContext

logger = logging.getLogger(__name__)


class Event(str, Enum):
    AUTH = "auth"
    AUTH_FAIL = "auth_fail"


@dataclass(frozen=True)
class HookResult:
    """Outcome of a hook: continue, or end the request with `response`."""

    handled: bool = False
    response: Optional[Response] = None


HookResult.CONTINUE = HookResult()


def short_circuit(response: Response) -> HookResult:
    return HookResult(handled=True, response=response)


Hook = Callable[["FlowContext"], Awaitable[HookResult]]


@dataclass
class AuthEvents:
    """Before/after hook lists per event."""

    _before: Dict[Event, List[Hook]] = field(default_factory=dict)
    _after: Dict[Event, List[Hook]] = field(default_factory=dict)

    def before(self, event: Event, hook: Hook) -> None:
        self._before.setdefault(event, []).append(hook)

    def after(self, event: Event, hook: Hook) -> None:
        self._after.setdefault(event, []).append(hook)

    async def fire_before(self, event: Event, ctx: "FlowContext") -> HookResult:
        return await self._fire(self._before.get(event, []), event, "before", ctx)

    async def fire_after(self, event: Event, ctx: "FlowContext") -> HookResult:
        return await self._fire(self._after.get(event, []), event, "after", ctx)

    @staticmethod
    async def _fire(hooks: List[Hook], event: Event, timing: str, ctx: "FlowContext") -> HookResult:
        for hook in hooks:
            result = await hook(ctx)
            if result.handled:
                logger.debug(
                    f"{timing} {event.value} hook handled the request",
                    extra={"hook": getattr(hook, "__qualname__", repr(hook))},
                )
                return result
        return HookResult.CONTINUE
