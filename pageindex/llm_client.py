"""LLM transport for the page index pipeline.

Three providers share one response shape:

    {"content": str, "status": "finished" | "truncated",
     "input_tokens": int, "output_tokens": int, "stop_reason": str}

Routing follows the model name:
  - "provider/model" names go to OpenRouter when an OpenRouter key is set
  - bare OpenAI names (gpt-*, o1*, o3*, o4*) go to OpenAI when an OpenAI key is set
  - everything else goes to Anthropic

Transport failures (connection errors, timeouts, non-200 responses, bodies
without content) are retried with exponential backoff. Once the budget is
spent OracleTransportError aborts the document. Content is returned as-is;
parsing it is the caller's business.
"""

from __future__ import annotations

import functools
import os
import time

import httpx

from pageindex.errors import OracleTransportError
from pageindex.log import log

FINISHED = "finished"
TRUNCATED = "truncated"

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_MAX_RETRIES = 10
BASE_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 30.0
MAX_OUTPUT_TOKENS = 16384

_OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4")


class _RetryableResponse(Exception):
    """Non-200 or content-less response; retried like a network error."""


def _is_openai_model(model: str) -> bool:
    return model.startswith(_OPENAI_PREFIXES)


def _is_openrouter_model(model: str) -> bool:
    return "/" in model


def _resolve_key_for_model(
    model: str,
    anthropic_key: str | None,
    openrouter_key: str | None = None,
    openai_key: str | None = None,
) -> str | None:
    if _is_openrouter_model(model) and openrouter_key:
        return openrouter_key
    if _is_openai_model(model) and openai_key:
        return openai_key
    return anthropic_key


def backoff_delay(attempt: int) -> float:
    """Delay before retry number ``attempt`` (0-based): 1s, 2s, 4s ... capped at 30s."""
    return min(BASE_BACKOFF_SECONDS * (2 ** attempt), MAX_BACKOFF_SECONDS)


def _build_messages(prompt: str, chat_history: list[dict] | None) -> list[dict]:
    messages = list(chat_history or [])
    messages.append({"role": "user", "content": prompt})
    return messages


def _post(url: str, headers: dict, payload: dict, timeout: float,
          client: httpx.Client | None) -> dict:
    if client is not None:
        resp = client.post(url, headers=headers, json=payload, timeout=timeout)
    else:
        resp = httpx.post(url, headers=headers, json=payload, timeout=timeout)
    if resp.status_code != 200:
        raise _RetryableResponse(f"API error {resp.status_code}: {resp.text[:500]}")
    try:
        return resp.json()
    except ValueError as e:
        raise _RetryableResponse(f"Response body is not JSON: {e}")


# ---------------------------------------------------------------------------
# Providers (single attempt each)
# ---------------------------------------------------------------------------

def call_llm_anthropic(prompt: str, model: str, api_key: str,
                       chat_history: list[dict] | None = None,
                       timeout: float = 180.0,
                       client: httpx.Client | None = None) -> dict:
    data = _post(
        ANTHROPIC_URL,
        {
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        },
        {
            "model": model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "temperature": 0,
            "messages": _build_messages(prompt, chat_history),
        },
        timeout,
        client,
    )
    blocks = data.get("content")
    if not isinstance(blocks, list):
        raise _RetryableResponse("Anthropic response has no content blocks")
    text = ""
    for block in blocks:
        if block.get("type") == "text":
            text += block["text"]
    usage = data.get("usage", {})
    stop_reason = data.get("stop_reason", "unknown")
    return {
        "content": text,
        "status": TRUNCATED if stop_reason == "max_tokens" else FINISHED,
        "input_tokens": usage.get("input_tokens", 0),
        "output_tokens": usage.get("output_tokens", 0),
        "stop_reason": stop_reason,
    }


def _call_chat_completions(url: str, prompt: str, model: str, api_key: str,
                           chat_history: list[dict] | None,
                           timeout: float,
                           client: httpx.Client | None) -> dict:
    data = _post(
        url,
        {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        {
            "model": model,
            "temperature": 0,
            "messages": _build_messages(prompt, chat_history),
        },
        timeout,
        client,
    )
    try:
        choice = data["choices"][0]
        text = choice["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        raise _RetryableResponse("Chat completion response has no choices")
    finish_reason = choice.get("finish_reason") or "unknown"
    usage = data.get("usage") or {}
    return {
        "content": text,
        "status": TRUNCATED if finish_reason == "length" else FINISHED,
        "input_tokens": usage.get("prompt_tokens", 0),
        "output_tokens": usage.get("completion_tokens", 0),
        "stop_reason": finish_reason,
    }


def call_llm_openai(prompt: str, model: str, api_key: str,
                    chat_history: list[dict] | None = None,
                    timeout: float = 180.0,
                    client: httpx.Client | None = None) -> dict:
    return _call_chat_completions(OPENAI_URL, prompt, model, api_key,
                                  chat_history, timeout, client)


def call_llm_openrouter(prompt: str, model: str, api_key: str,
                        chat_history: list[dict] | None = None,
                        timeout: float = 180.0,
                        client: httpx.Client | None = None) -> dict:
    return _call_chat_completions(OPENROUTER_URL, prompt, model, api_key,
                                  chat_history, timeout, client)


# ---------------------------------------------------------------------------
# Dispatch with retry
# ---------------------------------------------------------------------------

def call_llm_dispatch(
    prompt: str,
    model: str,
    chat_history: list[dict] | None = None,
    *,
    anthropic_key: str | None = None,
    openai_key: str | None = None,
    openrouter_key: str | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout: float = 180.0,
    client: httpx.Client | None = None,
    sleep_fn=time.sleep,
) -> dict:
    """Route one prompt to its provider, retrying transport failures."""
    key = _resolve_key_for_model(model, anthropic_key, openrouter_key, openai_key)
    if _is_openrouter_model(model) and openrouter_key:
        provider = call_llm_openrouter
    elif _is_openai_model(model) and openai_key:
        provider = call_llm_openai
    else:
        provider = call_llm_anthropic
    if not key:
        raise OracleTransportError(
            f"No API key available for model '{model}'. Set ANTHROPIC_API_KEY, "
            f"OPENAI_API_KEY or OPENROUTER_API_KEY.",
            attempts=0,
        )

    last_error: Exception | None = None
    for attempt in range(max_retries):
        try:
            return provider(prompt, model, key, chat_history=chat_history,
                            timeout=timeout, client=client)
        except (httpx.HTTPError, _RetryableResponse) as e:
            last_error = e
            log(f"LLM call failed (attempt {attempt + 1}/{max_retries}): {e}", "WARN")
            if attempt < max_retries - 1:
                sleep_fn(backoff_delay(attempt))
    raise OracleTransportError(
        f"Max retries reached for model '{model}': {last_error}",
        attempts=max_retries,
    )


def make_call_llm_fn(
    anthropic_key: str | None = None,
    openai_key: str | None = None,
    openrouter_key: str | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout: float = 180.0,
):
    """Bind keys and retry policy, giving ``fn(prompt, model, chat_history=None)``.

    Keys not passed explicitly are read from the environment. CHATGPT_API_KEY
    is accepted as a legacy name for the OpenAI key.
    """
    return functools.partial(
        call_llm_dispatch,
        anthropic_key=anthropic_key or os.environ.get("ANTHROPIC_API_KEY"),
        openai_key=(openai_key or os.environ.get("OPENAI_API_KEY")
                    or os.environ.get("CHATGPT_API_KEY")),
        openrouter_key=openrouter_key or os.environ.get("OPENROUTER_API_KEY"),
        max_retries=max_retries,
        timeout=timeout,
    )
