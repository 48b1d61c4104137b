"""Session and message store.

``SessionStore`` is the single owner of the chat sessions, their message logs
and the active-session pointer. Every mutation goes through its methods and is
followed by a best-effort save. Completion replies are applied to the session
that issued the request (looked up by id when the reply lands), never to
whichever session happens to be active at that point.
"""

from __future__ import annotations

import logging
from collections import Counter

from common.events import (
    CompletionFailedEvent,
    DefaultModelChangedEvent,
    EventCallback,
    EventEmitter,
    MessageAppendedEvent,
    MessageReplacedEvent,
    PendingChangedEvent,
    SessionUpdatedEvent,
    SessionsChangedEvent,
)
from chatdeck.completion import CompletionClient, CompletionError, UpstreamError
from chatdeck.config import ChatConfig, ConfigError
from chatdeck.models import (
    CompletionRequest,
    Message,
    Session,
    StoreState,
    derive_title,
)
from chatdeck.persistence import Persistence

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class InvalidStateError(Exception):
    pass


class SessionStore:
    def __init__(
        self,
        config: ChatConfig,
        client: CompletionClient,
        persistence: Persistence,
        on_event: EventCallback = None,
    ):
        self.config = config
        self.client = client
        self.persistence = persistence
        self.emitter = EventEmitter(on_event)
        self._sessions: list[Session] = []
        self._active_id: str | None = None
        self._default_model = config.default_model
        self._pending: Counter[str] = Counter()

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def active_session_id(self) -> str | None:
        return self._active_id

    @property
    def active_session(self) -> Session | None:
        if self._active_id is None:
            return None
        return self._find(self._active_id)

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def state(self) -> StoreState:
        return StoreState(
            sessions=[s.model_copy(deep=True) for s in self._sessions],
            active_session_id=self._active_id,
            default_model=self._default_model,
        )

    def get_session(self, session_id: str) -> Session:
        session = self._find(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def is_pending(self, session_id: str | None = None) -> bool:
        target = session_id or self._active_id
        return target is not None and self._pending[target] > 0

    def initialize(self) -> StoreState:
        try:
            loaded = self.persistence.load()
        except Exception as e:
            logger.warning(f"Could not load saved sessions, starting fresh: {e}")
            loaded = None

        if loaded is not None and loaded.sessions:
            self._sessions = list(loaded.sessions)
            self._default_model = loaded.default_model
            self._active_id = self._sessions[0].id
            logger.info(
                f"Restored {len(self._sessions)} sessions, active={self._active_id}"
            )
            self._emit_sessions()
        else:
            self._sessions = []
            self._add_default_session()
            self._save()
        return self.state

    def _new_session(self) -> Session:
        return Session(
            model=self._default_model,
            messages=[Message(role="assistant", content=self.config.greeting)],
        )

    def _add_default_session(self) -> Session:
        session = self._new_session()
        self._sessions.insert(0, session)
        self._active_id = session.id
        logger.info(f"Created session {session.id}")
        self._emit_sessions()
        return session

    def create_session(self) -> str:
        session = self._add_default_session()
        self._save()
        return session.id

    def delete_session(self, session_id: str) -> bool:
        session = self._find(session_id)
        if session is None:
            logger.debug(f"Delete ignored, no session {session_id}")
            return False

        self._sessions.remove(session)
        logger.info(f"Deleted session {session_id}")
        if not self._sessions:
            self._add_default_session()
        else:
            if self._active_id == session_id:
                self._active_id = self._sessions[0].id
            self._emit_sessions()
        self._save()
        return True

    def select_session(self, session_id: str) -> None:
        self.get_session(session_id)
        self._active_id = session_id
        self._emit_sessions()
        self._save()

    def set_session_model(self, session_id: str, model: str) -> None:
        session = self.get_session(session_id)
        session.model = model
        self._emit_updated(session)
        self._save()

    def rename_session(self, session_id: str, title: str) -> None:
        session = self.get_session(session_id)
        if not title.strip():
            raise InvalidStateError("Session title must not be empty")
        session.title = title.strip()
        self._emit_updated(session)
        self._save()

    def set_default_model(self, model: str) -> None:
        if not model.strip():
            raise InvalidStateError("Model must not be empty")
        self._default_model = model
        self._emit(DefaultModelChangedEvent(model))
        self._save()

    async def send_user_message(self, text: str) -> None:
        session = self.active_session
        if not text or not text.strip() or session is None:
            return

        user_message = Message(role="user", content=text)
        session.messages.append(user_message)
        if session.has_default_title:
            session.title = derive_title(text, self.config.title_max_chars)
            self._emit_updated(session)
        self._emit(MessageAppendedEvent(session.id, user_message.id, "user"))
        self._save()

        session_id = session.id
        request = CompletionRequest(text=text, model=session.model)
        self._begin_pending(session_id)
        try:
            reply = await self._complete(session_id, request)
            if reply is None:
                reply = self.config.error_message
            self._append_reply(session_id, reply)
        finally:
            self._end_pending(session_id)
        self._save()

    def _append_reply(self, session_id: str, content: str) -> None:
        target = self._find(session_id)
        if target is None:
            logger.info(f"Session {session_id} was deleted before its reply arrived")
            return
        message = Message(role="assistant", content=content)
        target.messages.append(message)
        self._emit(MessageAppendedEvent(session_id, message.id, "assistant"))

    async def regenerate_last_reply(self, session_id: str) -> None:
        session = self.get_session(session_id)
        messages = session.messages
        if (
            len(messages) < 2
            or messages[-1].role != "assistant"
            or messages[-2].role != "user"
        ):
            raise InvalidStateError(
                f"Session {session_id} has no user message followed by a reply"
            )

        old_reply = messages[-1]
        request = CompletionRequest(text=messages[-2].content, model=session.model)
        self._begin_pending(session_id)
        try:
            reply = await self._complete(session_id, request)
            replaced = reply is not None and self._replace_reply(
                session_id, old_reply.id, reply
            )
        finally:
            self._end_pending(session_id)
        if replaced:
            self._save()

    def _replace_reply(self, session_id: str, old_id: str, content: str) -> bool:
        target = self._find(session_id)
        index = _index_of(target.messages, old_id) if target else None
        if index is None:
            logger.info(
                f"Reply {old_id} in session {session_id} is gone, "
                "dropping regenerated reply"
            )
            return False
        new_reply = Message(role="assistant", content=content)
        target.messages[index] = new_reply
        self._emit(MessageReplacedEvent(session_id, old_id, new_reply.id))
        return True

    async def _complete(self, session_id: str, request: CompletionRequest) -> str | None:
        try:
            return await self.client.complete(request)
        except UpstreamError as e:
            logger.warning(
                f"Completion failed for session {session_id}: "
                f"upstream status={e.status}: {e.message}"
            )
            self._emit(CompletionFailedEvent(session_id, e.kind, e.message, e.status))
        except CompletionError as e:
            logger.warning(f"Completion failed for session {session_id}: {e.kind}: {e}")
            self._emit(CompletionFailedEvent(session_id, e.kind, str(e)))
        except ConfigError as e:
            logger.warning(f"Completion failed for session {session_id}: config: {e}")
            self._emit(CompletionFailedEvent(session_id, "config", str(e)))
        except Exception as e:
            logger.exception(f"Unexpected completion failure for session {session_id}")
            self._emit(CompletionFailedEvent(session_id, "unexpected", str(e)))
        return None

    def _find(self, session_id: str) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def _begin_pending(self, session_id: str) -> None:
        self._pending[session_id] += 1
        if self._pending[session_id] == 1:
            self._emit(PendingChangedEvent(session_id, True))

    def _end_pending(self, session_id: str) -> None:
        self._pending[session_id] -= 1
        if self._pending[session_id] <= 0:
            del self._pending[session_id]
            self._emit(PendingChangedEvent(session_id, False))

    def _save(self) -> None:
        try:
            self.persistence.save(self.state)
        except Exception as e:
            logger.warning(f"Could not save sessions, continuing unsaved: {e}")

    def _emit_sessions(self) -> None:
        self._emit(
            SessionsChangedEvent(
                session_ids=tuple(s.id for s in self._sessions),
                active_session_id=self._active_id,
            )
        )

    def _emit_updated(self, session: Session) -> None:
        self._emit(SessionUpdatedEvent(session.id, session.title, session.model))

    def _emit(self, event) -> None:
        self.emitter.emit(event)


def _index_of(messages: list[Message], message_id: str) -> int | None:
    for i, message in enumerate(messages):
        if message.id == message_id:
            return i
    return None
