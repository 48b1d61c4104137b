import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from common.jsonio import atomic_write_json, load_json
from chatdeck.models import StoreState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class PersistenceError(Exception):
    pass


class Persistence(Protocol):
    def load(self) -> StoreState | None: ...

    def save(self, state: StoreState) -> None: ...


def dump_state(state: StoreState) -> dict:
    return {"version": SCHEMA_VERSION, **state.model_dump(mode="json")}


def parse_state(data: dict) -> StoreState:
    if not isinstance(data, dict):
        raise PersistenceError(f"Expected a JSON object, got {type(data).__name__}")
    version = data.get("version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise PersistenceError(f"Unsupported state version: {version}")
    payload = {k: v for k, v in data.items() if k != "version"}
    try:
        return StoreState.model_validate(payload)
    except ValidationError as e:
        raise PersistenceError(f"Invalid state data: {e}") from e


class JsonFilePersistence:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> StoreState | None:
        try:
            data = load_json(self.path)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e
        if data is None:
            logger.debug(f"No saved sessions at {self.path}")
            return None
        state = parse_state(data)
        logger.info(f"Loaded {len(state.sessions)} sessions from {self.path}")
        return state

    def save(self, state: StoreState) -> None:
        try:
            atomic_write_json(self.path, dump_state(state))
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e
        logger.debug(f"Saved {len(state.sessions)} sessions to {self.path}")


class InMemoryPersistence:
    def __init__(self, state: StoreState | None = None) -> None:
        self._state = state.model_copy(deep=True) if state is not None else None
        self.saves = 0

    def load(self) -> StoreState | None:
        return self._state.model_copy(deep=True) if self._state is not None else None

    def save(self, state: StoreState) -> None:
        self._state = state.model_copy(deep=True)
        self.saves += 1
