"""Unified LLM client: dispatches to Anthropic or an OpenAI-compatible API."""

from __future__ import annotations

import logging
import os
from typing import Any

from specforge.config import SpecforgeConfig, get_config
from specforge.exceptions import BackendContentError, BackendTransportError

logger = logging.getLogger(__name__)


class LlmClient:
    """Provider-agnostic text generation backend."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str,
        base_url: str | None = None,
    ) -> None:
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    def invoke(
        self,
        messages: list[dict[str, str]],
        system: str,
        max_tokens: int = 4096,
    ) -> Any:
        """Send a conversation to the provider and return its raw response."""
        logger.debug(
            "LLM call: provider=%s model=%s max_tokens=%d",
            self.provider, self.model, max_tokens,
        )
        if self.provider == "openai":
            raw = self._invoke_openai_compat(messages, system, max_tokens)
        else:
            raw = self._invoke_anthropic(messages, system, max_tokens)
        _raise_for_content_error(raw)
        return raw

    def text_of(self, raw: Any) -> str:
        """Concatenate the text blocks of a raw response."""
        if raw is None:
            return ""
        if self.provider == "openai":
            choices = getattr(raw, "choices", None) or []
            choice = choices[0] if choices else None
            if choice and choice.message and choice.message.content:
                return choice.message.content
            return ""

        response_text = ""
        for block in getattr(raw, "content", None) or []:
            if getattr(block, "type", "text") == "text" and hasattr(block, "text"):
                response_text += block.text
        return response_text

    def _invoke_anthropic(
        self,
        messages: list[dict[str, str]],
        system: str,
        max_tokens: int,
    ) -> Any:
        try:
            from anthropic import Anthropic
        except ImportError as exc:
            raise BackendTransportError(
                "anthropic package not installed. Run: pip install anthropic"
            ) from exc

        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        try:
            client = Anthropic(api_key=self.api_key)
            return client.messages.create(**kwargs)
        except Exception as exc:
            raise BackendTransportError(f"Anthropic call failed: {exc}") from exc

    def _invoke_openai_compat(
        self,
        messages: list[dict[str, str]],
        system: str,
        max_tokens: int,
    ) -> Any:
        """Query an OpenAI-compatible API (OpenAI, OpenRouter, vLLM, etc.)."""
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise BackendTransportError(
                "openai package not installed. Run: pip install openai"
            ) from exc

        chat: list[dict[str, str]] = []
        if system:
            chat.append({"role": "system", "content": system})
        chat.extend(messages)

        try:
            client = OpenAI(api_key=self.api_key, base_url=self.base_url or None)
            return client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=chat,
            )
        except Exception as exc:
            raise BackendTransportError(
                f"OpenAI-compatible call failed: {exc}"
            ) from exc


def _raise_for_content_error(raw: Any) -> None:
    """Raise if the response body itself reports an error."""
    error = raw.get("error") if isinstance(raw, dict) else getattr(raw, "error", None)
    if getattr(raw, "type", None) == "error" and error is None:
        error = "backend returned an error response"
    if not error:
        return
    if isinstance(error, dict):
        message = error.get("message") or str(error)
    else:
        message = getattr(error, "message", None) or str(error)
    raise BackendContentError(message)


def get_llm_client(config: SpecforgeConfig | None = None) -> LlmClient:
    """Create the LlmClient from configuration."""
    if config is None:
        config = get_config()

    provider = config.llm_provider.lower()
    if provider == "openai":
        api_key = config.openai_api_key or os.environ.get("OPENAI_API_KEY", "")
        if not api_key:
            raise BackendTransportError(
                "OpenAI API key not configured. "
                "Set SPECFORGE_OPENAI_API_KEY or OPENAI_API_KEY "
                "in environment or .env file."
            )
        return LlmClient(
            provider="openai",
            api_key=api_key,
            model=config.model,
            base_url=config.openai_base_url or None,
        )

    if not config.anthropic_api_key:
        raise BackendTransportError(
            "Anthropic API key not configured. "
            "Set SPECFORGE_ANTHROPIC_API_KEY in environment or .env file."
        )
    return LlmClient(
        provider="anthropic",
        api_key=config.anthropic_api_key,
        model=config.model,
    )
