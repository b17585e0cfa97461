"""Language model collaborator backed by the Anthropic Messages API."""

import asyncio
from typing import Any

import anthropic

from bot_recall.core.base import AIServiceErrorDetails
from bot_recall.core.circuit_breaker import TRANSIENT_ERRORS, CircuitBreaker, RetryWithCircuitBreaker
from bot_recall.core.config import settings
from bot_recall.core.errors import (
    AuthenticationError,
    MalformedOutputError,
    ProcessingError,
    RateLimitError,
    ServiceError,
    TimeoutError,
)
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import ChatMessage, GenerationOptions, MessageRole

logger = get_logger(__name__)


class AnthropicLanguageModel:
    """``generate(messages, options) -> text`` over ``anthropic.AsyncAnthropic``.

    System messages are joined into the request's ``system`` parameter. Each
    attempt is bounded by ``timeout_seconds``; transient transport failures are
    retried with exponential backoff behind a circuit breaker.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        client: Any | None = None,
    ):
        api_key = api_key if api_key is not None else settings.anthropic_api_key
        if client is None and not api_key:
            raise AuthenticationError(
                message="Anthropic API key not found in settings",
                details={"source": "AnthropicLanguageModel", "operation": "initialization"},
            )

        self.model = model or settings.anthropic_model
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        # SDK-level retries are disabled; RetryWithCircuitBreaker owns the policy
        self.client: Any = client if client is not None else anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

        self._retry_handler = RetryWithCircuitBreaker(
            circuit_breaker=CircuitBreaker(
                name="anthropic_api",
                failure_threshold=5,
                recovery_timeout=60.0,
                expected_exception_types=TRANSIENT_ERRORS,
            ),
            max_retries=max_retries or settings.llm_max_retries,
            initial_delay=1.0,
            backoff_factor=2.0,
            max_delay=20.0,
        )

    def _details(self, options: GenerationOptions, status_code: int | None = None) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="AnthropicLanguageModel",
            operation="generate",
            service_name="Anthropic",
            endpoint="/v1/messages",
            status_code=status_code,
            model_name=self.model,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )

    @staticmethod
    def _split_messages(messages: list[ChatMessage]) -> tuple[str, list[dict[str, str]]]:
        system_parts = [message.content for message in messages if message.role == MessageRole.SYSTEM]
        conversation = [
            {"role": message.role.value, "content": message.content}
            for message in messages
            if message.role != MessageRole.SYSTEM and message.content
        ]
        return "\n\n".join(system_parts), conversation

    async def _create(self, options: GenerationOptions, system: str, conversation: list[dict[str, str]]) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": conversation,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await asyncio.wait_for(self.client.messages.create(**kwargs), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                message=f"Language model call exceeded {self.timeout_seconds}s",
                details=self._details(options, status_code=408),
            ) from e
        except anthropic.RateLimitError as e:
            raise RateLimitError(message=str(e), details=self._details(options, status_code=429)) from e
        except anthropic.APITimeoutError as e:
            raise TimeoutError(message=str(e), details=self._details(options, status_code=408)) from e
        except anthropic.APIConnectionError as e:
            raise ServiceError(message=str(e), details=self._details(options)) from e
        except anthropic.InternalServerError as e:
            raise ServiceError(message=str(e), details=self._details(options, status_code=e.status_code)) from e
        except anthropic.AuthenticationError as e:
            raise AuthenticationError(message=str(e), details=self._details(options, status_code=401)) from e
        except anthropic.APIStatusError as e:
            # Remaining 4xx responses are request problems and are not retried
            raise ProcessingError(message=str(e), details=self._details(options, status_code=e.status_code)) from e

        text = "".join(
            getattr(block, "text", "") for block in (response.content or []) if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise MalformedOutputError(
                message="Language model returned no text content",
                details=self._details(options, status_code=200),
            )
        return text

    async def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        system, conversation = self._split_messages(messages)
        if not conversation:
            # The Messages API needs at least one user turn
            conversation = [{"role": "user", "content": system}]
            system = ""

        logger.debug(f"Calling {self.model}", messages=len(conversation), max_tokens=options.max_tokens)
        return await self._retry_handler.call_async(self._create, options, system, conversation)
