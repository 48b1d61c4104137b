"""Completion collaborator: turns one user message into one assistant reply.

The store only depends on the ``CompletionClient`` protocol. The production
implementation goes through ``common.llm`` so provider routing, retries and
credentials are litellm's concern.
"""

from __future__ import annotations

import logging
from typing import Protocol

from litellm.exceptions import APIConnectionError, Timeout

from common import llm
from chatdeck.config import ChatConfig, ConfigError
from chatdeck.models import CompletionRequest

logger = logging.getLogger(__name__)

NO_REPLY = "No reply received"


class CompletionError(Exception):
    kind = "completion"


class UpstreamError(CompletionError):
    kind = "upstream"

    def __init__(self, status: int | None, message: str):
        super().__init__(f"upstream error (status={status}): {message}")
        self.status = status
        self.message = message


class TransportError(CompletionError):
    kind = "transport"


class CompletionClient(Protocol):
    async def complete(self, request: CompletionRequest) -> str: ...


class LiteLLMCompletionClient:
    def __init__(self, config: ChatConfig):
        self.config = config

    def _check_credentials(self, model: str) -> None:
        if self.config.api_key:
            return
        missing = llm.missing_credentials(model)
        if missing:
            raise ConfigError(
                f"No API key configured for {model} (set {', '.join(missing)})"
            )

    async def complete(self, request: CompletionRequest) -> str:
        self._check_credentials(request.model)

        try:
            response = await llm.acompletion(
                model=request.model,
                messages=[{"role": "user", "content": request.text}],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                timeout=self.config.request_timeout_s,
                num_retries=self.config.max_retries,
                api_key=self.config.api_key,
            )
        except Exception as e:
            raise _classify(e) from e

        text = llm.response_text(response)
        if not text or not text.strip():
            raise UpstreamError(None, NO_REPLY)
        logger.debug(f"Completion from {request.model}: {len(text)} chars")
        return text


def _classify(exc: Exception) -> CompletionError:
    if isinstance(exc, (APIConnectionError, Timeout, ConnectionError, TimeoutError)):
        return TransportError(str(exc) or exc.__class__.__name__)
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        status = None
    return UpstreamError(status, getattr(exc, "message", None) or str(exc))
