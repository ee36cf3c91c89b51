"""Tests for the analyze/improve flows."""

from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from codebuddy.core.assistant import (
    ScriptAssistant,
    analyze_output,
    improve_script,
    resolve_instructions,
)
from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.conversation import ConversationHistory
from codebuddy.core.providers import SYSTEM_INSTRUCTION
from codebuddy.core.site_prompts import SitePromptEntry

OPENAI_CONFIG = ProviderConfig(provider=ProviderType.OPENAI, api_key="sk-test")
SITE_PROMPTS = {"rport.io": SitePromptEntry(prompt="Use rport command syntax.")}


async def _no_sleep(seconds: float) -> None:
    return None


class _OpenAIStub:
    def __init__(self, replies: List[httpx.Response]) -> None:
        self.replies = replies
        self.bodies: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return self.replies.pop(0)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def _reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


def test_resolve_instructions() -> None:
    assert resolve_instructions("https://rport.io/docs", SITE_PROMPTS) == "Use rport command syntax."
    assert resolve_instructions("https://other.io", SITE_PROMPTS, "default") == "default"
    assert resolve_instructions(None, SITE_PROMPTS, "default") == "default"
    assert resolve_instructions(None, None) == ""


@pytest.mark.asyncio
async def test_analyze_output_uses_site_prompt() -> None:
    stub = _OpenAIStub([_reply("```sh\nrport run\n```")])
    async with stub.client() as client:
        result = await analyze_output(
            OPENAI_CONFIG,
            "unknown flag --x",
            "rport --x",
            url="https://rport.io/run",
            site_prompts=SITE_PROMPTS,
            client=client,
        )

    assert result.success
    assert result.content == "rport run"
    system, user = stub.bodies[0]["messages"]
    assert system["content"] == f"{SYSTEM_INSTRUCTION}\n\nUse rport command syntax."
    assert "Latest Output/Error:\nunknown flag --x" in user["content"]
    assert "Current Script:\nrport --x" in user["content"]


@pytest.mark.asyncio
async def test_improve_script_without_site_prompt() -> None:
    stub = _OpenAIStub([_reply("set -e\nmake")])
    async with stub.client() as client:
        result = await improve_script(OPENAI_CONFIG, "make", client=client)

    assert result.success
    system, user = stub.bodies[0]["messages"]
    assert system["content"] == SYSTEM_INSTRUCTION
    assert user["content"].startswith("Improve the following command or script")


@pytest.mark.asyncio
async def test_assistant_records_successful_attempts() -> None:
    stub = _OpenAIStub([_reply("fix one"), _reply("fix two")])
    assistant = ScriptAssistant(OPENAI_CONFIG)

    async with stub.client() as client:
        await assistant.analyze("error 1", "script 1", client=client)
        await assistant.analyze("error 2", "fix one", client=client)

    assert [a.improved_script for a in assistant.history] == ["fix one", "fix two"]
    first_prompt = stub.bodies[0]["messages"][1]["content"]
    second_prompt = stub.bodies[1]["messages"][1]["content"]
    assert "Previous Attempts" not in first_prompt
    assert "is STILL failing after 1 attempts" in second_prompt
    assert "Improvement made:\nfix one" in second_prompt

    assistant.reset()
    assert len(assistant.history) == 0


@pytest.mark.asyncio
async def test_assistant_does_not_record_failures() -> None:
    stub = _OpenAIStub([httpx.Response(401, json={"error": {"message": "bad key"}})])
    history = ConversationHistory()
    assistant = ScriptAssistant(OPENAI_CONFIG, history=history)

    async with stub.client() as client:
        result = await assistant.analyze("error", "script", client=client, sleep=_no_sleep)

    assert not result.success
    assert result.error == "Authentication failed: bad key"
    assert len(history) == 0


@pytest.mark.asyncio
async def test_invalid_config_short_circuits() -> None:
    stub = _OpenAIStub([])
    assistant = ScriptAssistant(ProviderConfig(provider=ProviderType.OPENAI))

    async with stub.client() as client:
        result = await assistant.analyze("error", client=client)

    assert result.error == "Configuration error: API key is required"
    assert stub.bodies == []
