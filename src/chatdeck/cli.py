from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from common import llm
from chatdeck.config import ChatConfig, ConfigError, resolve_model_alias


def main() -> int:
    load_dotenv()
    return _main(sys.argv[1:])


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatdeck", description="chatdeck - multi-session LLM chat")
    subparsers = parser.add_subparsers(dest="command", required=False)

    chat = subparsers.add_parser("chat", help="Start the interactive chat")
    chat.add_argument(
        "--model",
        default=None,
        help="Default model for new chats (supports aliases: mini, 4o, sonnet, haiku, flash, deepseek)",
    )
    chat.add_argument("--data", default=None, help="Path of the sessions file")
    chat.add_argument("--ephemeral", action="store_true", help="Keep sessions in memory only")
    chat.add_argument("-v", "--verbose", action="store_true")

    check = subparsers.add_parser("check", help="Check that an API key is configured")
    check.add_argument("--model", default=None)

    sessions = subparsers.add_parser("sessions", help="List saved chats")
    sessions.add_argument("--data", default=None, help="Path of the sessions file")

    return parser


def _main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    cmd = args.command or "chat"
    if cmd == "chat":
        return _cmd_chat(
            model=getattr(args, "model", None),
            data=getattr(args, "data", None),
            ephemeral=bool(getattr(args, "ephemeral", False)),
            verbose=bool(getattr(args, "verbose", False)),
        )
    if cmd == "check":
        return _cmd_check(args)
    if cmd == "sessions":
        return _cmd_sessions(args)

    parser.print_help(sys.stderr)
    return 2


def _load_config(model: str | None, data: str | None) -> ChatConfig | None:
    try:
        config = ChatConfig.from_env(model=model, data_path=data)
        config.validate()
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return None
    return config


def _cmd_chat(*, model: str | None, data: str | None, ephemeral: bool, verbose: bool) -> int:
    from chatdeck.completion import LiteLLMCompletionClient
    from chatdeck.persistence import InMemoryPersistence, JsonFilePersistence
    from chatdeck.repl import ChatREPL
    from chatdeck.store import SessionStore

    setup_logging(verbose)
    config = _load_config(model, data)
    if config is None:
        return 1

    persistence = InMemoryPersistence() if ephemeral else JsonFilePersistence(config.data_path)
    store = SessionStore(config, LiteLLMCompletionClient(config), persistence)
    store.initialize()
    if model:
        store.set_default_model(config.default_model)

    asyncio.run(ChatREPL(store).run())
    return 0


def mask_key(value: str) -> str:
    return value[:10] + "..." if len(value) > 10 else value[:3] + "..."


def _cmd_check(args) -> int:
    config = _load_config(args.model, None)
    if config is None:
        return 1
    model = resolve_model_alias(config.default_model)

    if config.api_key:
        print(f"Model: {model}")
        print(f"Key: CHATDECK_API_KEY={mask_key(config.api_key)}")
        return 0

    missing = llm.missing_credentials(model)
    provider = llm.get_model_info(model).get("litellm_provider", "unknown")
    print(f"Model: {model} (provider: {provider})")
    if missing:
        print(f"Key: missing (set {', '.join(missing)})")
        return 1
    env_name = f"{provider.upper()}_API_KEY"
    value = os.environ.get(env_name)
    if value:
        print(f"Key: {env_name}={mask_key(value)}")
    else:
        print("Key: configured")
    return 0


def _cmd_sessions(args) -> int:
    from chatdeck.persistence import JsonFilePersistence, PersistenceError

    config = _load_config(None, args.data)
    if config is None:
        return 1
    try:
        state = JsonFilePersistence(config.data_path).load()
    except PersistenceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if state is None or not state.sessions:
        print("No sessions found.")
        return 0

    print(f"{'ID':<10} {'Created':<20} {'Model':<28} {'Msgs':>4}  {'Title'}")
    for session in state.sessions:
        created = session.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(
            f"{session.id:<10} {created:<20} {session.model:<28} "
            f"{len(session.messages):>4}  {session.title}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
