from __future__ import annotations

import asyncio
import traceback
from dataclasses import dataclass

from chatdeck.config import resolve_model_alias
from chatdeck.models import Message, Session
from chatdeck.store import InvalidStateError, SessionNotFoundError, SessionStore


@dataclass(frozen=True)
class RouteResult:
    kind: str
    name: str | None
    args: str


def render_message(message: Message) -> str:
    who = "You" if message.role == "user" else "Bot"
    return f"{who}: {message.content}"


class ChatCommands:
    def __init__(self, store: SessionStore):
        self.store = store
        self._handlers = {
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
            "help": self.cmd_help,
            "new": self.cmd_new,
            "sessions": self.cmd_sessions,
            "switch": self.cmd_switch,
            "delete": self.cmd_delete,
            "model": self.cmd_model,
            "default-model": self.cmd_default_model,
            "rename": self.cmd_rename,
            "regen": self.cmd_regen,
            "history": self.cmd_history,
        }

    def list_commands(self) -> list[str]:
        return sorted(self._handlers.keys())

    def has_command(self, name: str) -> bool:
        return name in self._handlers

    async def handle(self, name: str, args: str) -> bool:
        handler = self._handlers.get(name)
        if not handler:
            return True
        return await handler(args)

    def _resolve(self, ref: str) -> str:
        """Accept a session id or its 1-based position in ``/sessions``."""
        sessions = self.store.sessions
        if ref.isdigit() and 1 <= int(ref) <= len(sessions):
            return sessions[int(ref) - 1].id
        return ref

    async def cmd_quit(self, args: str) -> bool:
        print("Goodbye!")
        return False

    async def cmd_help(self, args: str) -> bool:
        print("Commands:")
        print("  /new                  start a new chat")
        print("  /sessions             list chats (* marks the active one)")
        print("  /switch <id|n>        switch to a chat")
        print("  /delete [<id|n>]      delete a chat (default: the active one)")
        print("  /model [<name>]       show or set the model of the active chat")
        print("  /default-model <name> set the model new chats start with")
        print("  /rename <title>       rename the active chat")
        print("  /regen                regenerate the last reply")
        print("  /history              show the active chat")
        print("  /quit                 exit")
        return True

    async def cmd_new(self, args: str) -> bool:
        session_id = self.store.create_session()
        session = self.store.get_session(session_id)
        print(f"Started {session_id} ({session.model})")
        print(render_message(session.messages[0]))
        return True

    async def cmd_sessions(self, args: str) -> bool:
        active = self.store.active_session_id
        for i, session in enumerate(self.store.sessions, start=1):
            marker = "*" if session.id == active else " "
            pending = " (waiting)" if self.store.is_pending(session.id) else ""
            print(
                f"{marker} {i:>2}. {session.id:<10} {session.title[:40]:<43} "
                f"{session.model} [{len(session.messages)}]{pending}"
            )
        return True

    async def cmd_switch(self, args: str) -> bool:
        if not args:
            print("Usage: /switch <id|n>")
            return True
        try:
            self.store.select_session(self._resolve(args.strip()))
        except SessionNotFoundError as e:
            print(f"Error: {e}")
            return True
        _print_session(self.store.active_session)
        return True

    async def cmd_delete(self, args: str) -> bool:
        target = self._resolve(args.strip()) if args.strip() else self.store.active_session_id
        if target is None or not self.store.delete_session(target):
            print(f"Error: Session {args.strip()} not found")
            return True
        print(f"Deleted {target}, active: {self.store.active_session_id}")
        return True

    async def cmd_model(self, args: str) -> bool:
        session = self.store.active_session
        if not args:
            print(f"Model: {session.model}")
            return True
        model = resolve_model_alias(args.strip())
        self.store.set_session_model(session.id, model)
        print(f"Model set to {model}")
        return True

    async def cmd_default_model(self, args: str) -> bool:
        if not args:
            print(f"Default model: {self.store.default_model}")
            return True
        model = resolve_model_alias(args.strip())
        self.store.set_default_model(model)
        print(f"Default model set to {model}")
        return True

    async def cmd_rename(self, args: str) -> bool:
        try:
            self.store.rename_session(self.store.active_session_id, args)
        except InvalidStateError as e:
            print(f"Error: {e}")
            return True
        print(f"Renamed to {self.store.active_session.title}")
        return True

    async def cmd_regen(self, args: str) -> bool:
        session_id = self.store.active_session_id
        try:
            await self.store.regenerate_last_reply(session_id)
        except InvalidStateError as e:
            print(f"Error: {e}")
            return True
        print(render_message(self.store.get_session(session_id).messages[-1]))
        return True

    async def cmd_history(self, args: str) -> bool:
        _print_session(self.store.active_session)
        return True


def _print_session(session: Session | None) -> None:
    if session is None:
        return
    print(f"== {session.title} ({session.model})")
    for message in session.messages:
        print(render_message(message))


class InputRouter:
    def __init__(self, commands: ChatCommands):
        self.commands = commands

    def route(self, user_input: str) -> RouteResult:
        if not user_input.startswith("/"):
            return RouteResult(kind="prompt", name=None, args=user_input)

        parts = user_input.split(maxsplit=1)
        cmd = parts[0].lstrip("/")
        args = parts[1] if len(parts) > 1 else ""

        if self.commands.has_command(cmd):
            return RouteResult(kind="builtin", name=cmd, args=args)
        return RouteResult(kind="unknown", name=cmd, args=args)


class ChatREPL:
    def __init__(self, store: SessionStore):
        self.store = store
        self.commands = ChatCommands(store)
        self.router = InputRouter(self.commands)

    async def process(self, user_input: str) -> bool:
        route = self.router.route(user_input)
        if route.kind == "builtin":
            return await self.commands.handle(route.name, route.args)
        if route.kind == "unknown":
            print(f"Unknown command: /{route.name}. Type /help for available commands.")
            return True

        session_id = self.store.active_session_id
        await self.store.send_user_message(route.args)
        print(render_message(self.store.get_session(session_id).messages[-1]))
        return True

    async def handle_line(self, user_input: str) -> bool:
        try:
            return await self.process(user_input)
        except Exception as e:
            print(f"Error: {e}")
            traceback.print_exc()
            return True

    async def run(self) -> None:
        session = self.store.active_session
        print(f"chatdeck started (model: {session.model})")
        print("Commands: /help for all commands")
        print()
        _print_session(session)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\n> ")).strip()
            except (KeyboardInterrupt, EOFError):
                print()
                break
            if not user_input:
                continue
            if not await self.handle_line(user_input):
                break
