"""In-process auth events (Registered, Verified, PasswordReset) and their listeners."""

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from app.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registered:
    user: User


@dataclass(frozen=True)
class Verified:
    user: User


@dataclass(frozen=True)
class PasswordReset:
    user: User


Listener = Callable[[Any], Awaitable[None] | None]


class EventDispatcher:
    """
    Calls listeners in registration order. Listener errors propagate to the
    caller, which decides whether the event is part of its transaction.
    """

    def __init__(self) -> None:
        self._listeners: dict[type, list[Listener]] = defaultdict(list)

    def listen(self, event_type: type, listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def listeners_for(self, event_type: type) -> list[Listener]:
        return list(self._listeners.get(event_type, ()))

    async def dispatch(self, event: Any) -> None:
        for listener in self.listeners_for(type(event)):
            result = listener(event)
            if inspect.isawaitable(result):
                await result


def log_event(event: Any) -> None:
    logger.info(
        "Auth event %s",
        type(event).__name__,
        extra={"user_id": event.user.id, "email": event.user.email},
    )
