# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, cast

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam
from pydantic import BaseModel, Field

from astig_gateway.exceptions import ConfigurationError, UpstreamError, UpstreamTimeoutError
from astig_gateway.settings import Settings
from astig_gateway.utils.logger import logger


class LLMRequest(BaseModel):
    """
    Standardized request object for chat-completion calls.
    """

    messages: list[dict[str, str]]
    system_prompt: Optional[str] = None
    temperature: float = 0.4
    max_tokens: int = 1000
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_turn(cls, system_prompt: str, user_text: str, **kwargs: Any) -> "LLMRequest":
        return cls(messages=[{"role": "user", "content": user_text}], system_prompt=system_prompt, **kwargs)

    @property
    def user_text(self) -> str:
        """Content of the last user turn, or an empty string."""
        for msg in reversed(self.messages):
            if msg.get("role") == "user":
                return msg.get("content", "")
        return ""


class LLMResponse(BaseModel):
    """
    Standardized response object from chat-completion calls.
    """

    content: str
    usage: dict[str, int] = Field(default_factory=dict)
    finish_reason: Optional[str] = None
    provider_metadata: dict[str, Any] = Field(default_factory=dict)


class BaseLLMClient(ABC):
    """
    Abstract base class for the chat-completion capability.
    Contract: returns text given (system prompt, user text), or raises.
    """

    @abstractmethod
    async def get_completion(self, request: LLMRequest) -> LLMResponse:
        """
        Generates a completion for the given request.

        Args:
            request: The LLMRequest object containing messages and parameters.

        Returns:
            LLMResponse object containing the text content and metadata.

        Raises:
            UpstreamError: The provider failed or answered with an error status.
        """
        pass  # pragma: no cover


class MockLLMClient(BaseLLMClient):
    """
    Mock implementation of LLM Client for testing and offline runs.
    Every request it receives is recorded in ``requests``.
    """

    def __init__(
        self,
        return_content: str = "Mock LLM Response",
        responder: Optional[Callable[[LLMRequest], str]] = None,
        delay_seconds: float = 0.0,
        failure_exception: Optional[Exception] = None,
    ) -> None:
        self.return_content = return_content
        self.responder = responder
        self.delay_seconds = delay_seconds
        self.failure_exception = failure_exception
        self.requests: list[LLMRequest] = []

    async def get_completion(self, request: LLMRequest) -> LLMResponse:
        logger.debug(f"MockLLMClient processing request with {len(request.messages)} messages.")
        self.requests.append(request)

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.failure_exception:
            raise self.failure_exception

        content = self.responder(request) if self.responder else self.return_content
        return LLMResponse(
            content=content,
            usage={"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
            finish_reason="stop",
            provider_metadata={"mock": True},
        )


class OpenAILLMClient(BaseLLMClient):
    """
    OpenAI implementation of the chat-completion capability.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        """
        Initializes the AsyncOpenAI client from settings.

        Raises:
            ConfigurationError: OPENAI_API_KEY is not set and no client was injected.
        """
        self.model = settings.openai_model
        if client is None:
            key = (settings.openai_api_key or "").strip()
            if not key:
                raise ConfigurationError("OPENAI_API_KEY")
            # No retry policy: one attempt per call, bounded by the request timeout.
            client = AsyncOpenAI(
                api_key=key,
                base_url=settings.openai_base_url or None,
                timeout=settings.request_timeout_seconds,
                max_retries=0,
            )
        self.client = client

    async def get_completion(self, request: LLMRequest) -> LLMResponse:
        logger.debug(f"OpenAILLMClient processing request with {len(request.messages)} messages.")

        messages: list[ChatCompletionMessageParam] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        for msg in request.messages:
            messages.append(cast(ChatCompletionMessageParam, msg))

        model = str(request.metadata.get("model", self.model))

        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API call timed out: {e}")
            raise UpstreamTimeoutError("Upstream OpenAI timeout") from e
        except openai.APIStatusError as e:
            logger.error(f"OpenAI error: {e.status_code} {e.message}")
            raise UpstreamError("Upstream OpenAI error", status=e.status_code) from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API call failed: {str(e)}")
            raise UpstreamError("Upstream OpenAI error", code="upstream_unreachable") from e

        choice = completion.choices[0] if completion.choices else None
        content = (choice.message.content if choice else None) or ""

        usage = {}
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        return LLMResponse(
            content=content,
            usage=usage,
            finish_reason=str(choice.finish_reason) if choice and choice.finish_reason else None,
            provider_metadata={"model": model, "id": completion.id},
        )
