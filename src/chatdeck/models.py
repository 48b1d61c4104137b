from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from common.ids import generate_id, generate_sortable_id
from chatdeck.config import NEW_CHAT_TITLE


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


Role = Literal["user", "assistant"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_sortable_id)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class Session(BaseModel):
    id: str = Field(default_factory=generate_id, frozen=True)
    title: str = NEW_CHAT_TITLE
    model: str
    messages: list[Message] = Field(min_length=1)
    created_at: datetime = Field(default_factory=utc_now, frozen=True)

    @property
    def has_default_title(self) -> bool:
        return self.title == NEW_CHAT_TITLE


class StoreState(BaseModel):
    sessions: list[Session] = Field(default_factory=list)
    active_session_id: str | None = None
    default_model: str


class CompletionRequest(BaseModel):
    text: str
    model: str


def derive_title(text: str, max_chars: int = 50) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text
