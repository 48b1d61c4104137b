from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeAlias


@dataclass(frozen=True, slots=True)
class SessionsChangedEvent:
    session_ids: tuple[str, ...]
    active_session_id: str | None


@dataclass(frozen=True, slots=True)
class SessionUpdatedEvent:
    session_id: str
    title: str
    model: str


@dataclass(frozen=True, slots=True)
class DefaultModelChangedEvent:
    model: str


@dataclass(frozen=True, slots=True)
class MessageAppendedEvent:
    session_id: str
    message_id: str
    role: str


@dataclass(frozen=True, slots=True)
class MessageReplacedEvent:
    session_id: str
    old_message_id: str
    message_id: str


@dataclass(frozen=True, slots=True)
class PendingChangedEvent:
    session_id: str
    pending: bool


@dataclass(frozen=True, slots=True)
class CompletionFailedEvent:
    session_id: str
    kind: str
    message: str
    status: int | None = None


Event: TypeAlias = (
    SessionsChangedEvent
    | SessionUpdatedEvent
    | DefaultModelChangedEvent
    | MessageAppendedEvent
    | MessageReplacedEvent
    | PendingChangedEvent
    | CompletionFailedEvent
)
EventCallback: TypeAlias = Callable[[Event], None] | None


class EventEmitter:
    def __init__(self, callback: EventCallback = None):
        self._callback = callback

    def emit(self, event: Event) -> None:
        if self._callback is not None:
            self._callback(event)
