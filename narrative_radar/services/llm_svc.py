from __future__ import annotations

import json
import logging
import re
from typing import Any, cast

from openai import AsyncOpenAI

from narrative_radar.core.config import LLM_TIMEOUT_SECONDS, get_settings
from narrative_radar.core.exceptions import LLMServiceError

logger = logging.getLogger(__name__)

DEFAULT_JSON_INSTRUCTION = "You are an expert analyst. Return ONLY valid JSON, no markdown, no explanation."

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_RAW_JSON = re.compile(r"(\[[\s\S]*\]|\{[\s\S]*\})")


def parse_json_payload(text: str | None) -> Any:
    """
    Extract a JSON value from model output.

    Accepts bare JSON, JSON inside a fenced code block, or JSON embedded in
    surrounding prose. Returns ``None`` when nothing parses.
    """
    if not text:
        return None
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for pattern in (_FENCED_BLOCK, _RAW_JSON):
        match = pattern.search(text)
        if match:
            try:
                return json.loads(match.group(1).strip())
            except json.JSONDecodeError:
                continue
    return None


class LLMService:
    """
    xAI (Grok) integration through the OpenAI-compatible API.

    Provides structured JSON answers for clustering and idea generation, and
    X search through the Responses API ``x_search`` tool for the social and
    research sources. Every call is stateless.
    """

    def __init__(self, settings: Any = None) -> None:
        """
        Initialise the LLM service.

        Args:
            settings: Application settings containing the xAI API key, base
                      URL and model names. Falls back to global settings if
                      not provided.
        """
        self.settings = settings or get_settings()
        self.client: AsyncOpenAI | None
        if self.settings.XAI_API_KEY:
            self.client = AsyncOpenAI(
                api_key=self.settings.XAI_API_KEY,
                base_url=self.settings.LLM_BASE_URL,
                timeout=LLM_TIMEOUT_SECONDS,
            )
        else:
            self.client = None
            logger.warning("LLMService initialized without XAI_API_KEY. AI calls will fail.")
        self.model = self.settings.CHAT_MODEL
        self.search_model = getattr(self.settings, "SEARCH_MODEL", None) or self.model

    def _require_client(self) -> AsyncOpenAI:
        if not self.client:
            raise LLMServiceError("LLM client is not configured (XAI_API_KEY missing)", model=self.model)
        return self.client

    async def ask_for_json(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float = 0.3,
    ) -> Any:
        """
        Ask the chat model a question and parse a JSON answer.

        Args:
            prompt: User prompt describing the task and the JSON shape.
            system_instruction: Optional persona; defaults to a JSON-only analyst.
            temperature: Sampling temperature.

        Returns:
            The parsed JSON value, or ``None`` if the answer held no JSON.

        Raises:
            LLMServiceError: If the API call fails.
        """
        client = self._require_client()
        messages = [
            {"role": "system", "content": system_instruction or DEFAULT_JSON_INSTRUCTION},
            {"role": "user", "content": prompt},
        ]
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=cast(Any, messages),
                temperature=temperature,
            )
        except Exception as e:
            logger.error("LLM JSON request failed: %s", e, exc_info=True)
            raise LLMServiceError(f"LLM request failed: {e}", model=self.model) from e

        content = response.choices[0].message.content if response.choices else None
        return parse_json_payload(content)

    async def search_x(
        self,
        query: str,
        system_instruction: str | None = None,
        output_format: str | None = None,
    ) -> Any:
        """
        Search X through the ``x_search`` tool and parse the JSON answer.

        Raises:
            LLMServiceError: If the API call fails.
        """
        client = self._require_client()
        instructions = system_instruction or (
            "You are a social media research agent. Use x_search to find relevant posts.\n"
            f'Search for: "{query}"\n'
            + (f"Return results as JSON in this format: {output_format}" if output_format
               else "Return results as a JSON array.")
        )
        try:
            response = await client.responses.create(
                model=self.search_model,
                input=cast(Any, [
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": f"Search X for: {query}"},
                ]),
                tools=cast(Any, [{"type": "x_search"}]),
            )
        except Exception as e:
            logger.error("X search failed for %r: %s", query, e)
            raise LLMServiceError(f"X search failed: {e}", model=self.search_model) from e

        return parse_json_payload(getattr(response, "output_text", None))
