"""
Tests for LLMService JSON handling and X search.
"""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from narrative_radar.core.config import Settings
from narrative_radar.core.exceptions import LLMServiceError
from narrative_radar.services.llm_svc import LLMService, parse_json_payload


@pytest.fixture
def llm_service():
    service = LLMService(Settings(XAI_API_KEY="test-key"))
    service.client = MagicMock()
    return service


def _chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"narratives": []}', {"narratives": []}),
        ('```json\n{"ideas": [1]}\n```', {"ideas": [1]}),
        ('Here you go:\n[{"text": "hi"}]\nHope that helps', [{"text": "hi"}]),
        ("no json here", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_json_payload(text, expected):
    assert parse_json_payload(text) == expected


@pytest.mark.asyncio
async def test_ask_for_json_uses_chat_model(llm_service):
    llm_service.client.chat.completions.create = AsyncMock(return_value=_chat_response('{"ok": true}'))

    result = await llm_service.ask_for_json("prompt", system_instruction="be terse")

    assert result == {"ok": True}
    kwargs = llm_service.client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == llm_service.model
    assert kwargs["messages"][0] == {"role": "system", "content": "be terse"}
    assert kwargs["messages"][1] == {"role": "user", "content": "prompt"}


@pytest.mark.asyncio
async def test_ask_for_json_wraps_api_errors(llm_service):
    llm_service.client.chat.completions.create = AsyncMock(side_effect=RuntimeError("502 bad gateway"))

    with pytest.raises(LLMServiceError) as exc_info:
        await llm_service.ask_for_json("prompt")

    assert exc_info.value.model == llm_service.model


@pytest.mark.asyncio
async def test_search_x_uses_x_search_tool(llm_service):
    llm_service.client.responses.create = AsyncMock(
        return_value=SimpleNamespace(output_text='[{"username": "toly", "text": "gm"}]')
    )

    results = await llm_service.search_x("Solana DePIN", system_instruction="find posts")

    assert results == [{"username": "toly", "text": "gm"}]
    kwargs = llm_service.client.responses.create.call_args.kwargs
    assert kwargs["tools"] == [{"type": "x_search"}]
    assert kwargs["model"] == llm_service.search_model


@pytest.mark.asyncio
async def test_search_x_wraps_errors(llm_service):
    llm_service.client.responses.create = AsyncMock(side_effect=RuntimeError("timeout"))

    with pytest.raises(LLMServiceError):
        await llm_service.search_x("Solana")


@pytest.mark.asyncio
async def test_missing_client_raises(llm_service):
    llm_service.client = None

    with pytest.raises(LLMServiceError):
        await llm_service.ask_for_json("prompt")
