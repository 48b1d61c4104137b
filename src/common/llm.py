import warnings
from typing import Any

import litellm
from litellm import acompletion as litellm_acompletion

warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
litellm.drop_params = True


async def acompletion(
    model: str,
    messages: list[dict],
    temperature: float = 0.7,
    max_tokens: int = 1024,
    timeout: float | None = None,
    num_retries: int = 0,
    api_key: str | None = None,
    **kwargs,
) -> Any:
    params = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "num_retries": num_retries,
        **kwargs,
    }

    if timeout is not None:
        params["timeout"] = timeout
    if api_key:
        params["api_key"] = api_key

    return await litellm_acompletion(**params)


def response_text(response: Any) -> str | None:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content


def missing_credentials(model: str) -> list[str]:
    """Names of provider env vars litellm expects for ``model`` but cannot find."""
    try:
        info = litellm.validate_environment(model=model)
    except Exception:
        return []
    if info.get("keys_in_environment"):
        return []
    return list(info.get("missing_keys") or [])


def get_model_info(model: str) -> dict:
    try:
        return litellm.get_model_info(model)
    except Exception:
        return {}
