"""Tests for the Anthropic language model adapter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bot_recall.core.errors import AuthenticationError, MalformedOutputError, TimeoutError
from bot_recall.domain.models import ChatMessage, GenerationOptions
from bot_recall.infrastructure.llm import AnthropicLanguageModel


def text_block(text):
    return MagicMock(type="text", text=text)


def make_client(*blocks):
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=MagicMock(content=list(blocks)))
    return client


def test_missing_key_is_an_authentication_error():
    with pytest.raises(AuthenticationError):
        AnthropicLanguageModel(api_key="")


async def test_system_messages_become_the_system_parameter():
    client = make_client(text_block("Xin "), text_block("chào"))
    llm = AnthropicLanguageModel(api_key="key", model="claude-test", client=client)
    messages = [
        ChatMessage.system("Be brief."),
        ChatMessage.system("Answer in Vietnamese."),
        ChatMessage.user("hello"),
        ChatMessage.assistant(""),
    ]

    reply = await llm.generate(messages, GenerationOptions(temperature=0.2, max_tokens=50))

    assert reply == "Xin chào"
    client.messages.create.assert_awaited_once_with(
        model="claude-test",
        messages=[{"role": "user", "content": "hello"}],
        temperature=0.2,
        max_tokens=50,
        system="Be brief.\n\nAnswer in Vietnamese.",
    )


async def test_system_only_prompt_is_sent_as_user_turn():
    client = make_client(text_block("[]"))
    llm = AnthropicLanguageModel(api_key="key", model="claude-test", client=client)

    await llm.generate([ChatMessage.system("Extract facts.")], GenerationOptions())

    kwargs = client.messages.create.await_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "Extract facts."}]
    assert "system" not in kwargs


async def test_empty_response_is_malformed_and_not_retried():
    client = make_client(MagicMock(type="tool_use", text=""))
    llm = AnthropicLanguageModel(api_key="key", client=client, max_retries=3)

    with pytest.raises(MalformedOutputError):
        await llm.generate([ChatMessage.user("hi")], GenerationOptions())
    assert client.messages.create.await_count == 1


async def test_slow_calls_time_out():
    async def slow(**kwargs):
        await asyncio.sleep(1)

    client = MagicMock()
    client.messages.create = slow
    llm = AnthropicLanguageModel(api_key="key", client=client, timeout_seconds=0.01, max_retries=1)

    with pytest.raises(TimeoutError):
        await llm.generate([ChatMessage.user("hi")], GenerationOptions())
