"""Provider-agnostic gateway to the generative AI model.

Providers turn a prompt (plus optional inline images and chat history) into
text. The gateway picks a provider from settings, times each call and maps
provider failures to AIServiceError.

Usage:
    gateway = AIGateway.from_settings(config.settings)
    text = await gateway.generate("Summarize ...")
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """The AI provider could not be reached or refused the request."""


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    text: str


@dataclass(frozen=True)
class InlineImage:
    data: bytes
    mime_type: str = "image/jpeg"


# ── Provider Abstract Base ────────────────────────────────────────────────────

class AIProvider(ABC):
    """Abstract interface for text generation providers."""

    name: str = "abstract"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        images: Sequence[InlineImage] = (),
        history: Sequence[ChatMessage] = (),
        response_schema: dict[str, Any] | None = None,
        system_instruction: str | None = None,
    ) -> str:
        """
        Generate a completion.

        Args:
            prompt: The user turn
            model: Model identifier
            images: Inline images sent alongside the prompt
            history: Earlier chat turns, oldest first
            response_schema: When given, the reply must be JSON matching it
            system_instruction: Optional system prompt

        Returns:
            The model's text reply
        """
        ...


# ── Google Gemini Provider ────────────────────────────────────────────────────

class GeminiProvider(AIProvider):
    """Google Gemini via the google-genai SDK (async client)."""

    name = "gemini"

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        images: Sequence[InlineImage] = (),
        history: Sequence[ChatMessage] = (),
        response_schema: dict[str, Any] | None = None,
        system_instruction: str | None = None,
    ) -> str:
        client = self._get_client()

        contents = []
        for message in history:
            # Gemini uses "user" and "model" roles
            role = "model" if message.role == "assistant" else "user"
            contents.append(types.Content(role=role, parts=[types.Part(text=message.text)]))

        parts = [types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images]
        parts.append(types.Part(text=prompt))
        contents.append(types.Content(role="user", parts=parts))

        config = types.GenerateContentConfig(temperature=0.4)
        if system_instruction:
            config.system_instruction = system_instruction
        if response_schema is not None:
            config.response_mime_type = "application/json"
            config.response_schema = response_schema

        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise AIServiceError(str(e)) from e

        return response.text or ""


# ── Local Stub Provider (for dev/test without API keys) ──────────────────────

class StubProvider(AIProvider):
    """
    Deterministic provider for development and tests.

    Scripted replies are returned in order; an Exception instance in the
    script is raised instead of returned. Once the script is exhausted,
    JSON requests get an empty plan and text requests get an echo.
    Every call is recorded in ``calls``.
    """

    name = "stub"

    def __init__(self, responses: Sequence[str | Exception] = ()):
        self._responses = deque(responses)
        self.calls: list[dict[str, Any]] = []

    def script(self, *responses: str | Exception) -> None:
        self._responses.extend(responses)

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        images: Sequence[InlineImage] = (),
        history: Sequence[ChatMessage] = (),
        response_schema: dict[str, Any] | None = None,
        system_instruction: str | None = None,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "model": model,
                "images": list(images),
                "history": list(history),
                "response_schema": response_schema,
                "system_instruction": system_instruction,
            }
        )
        if self._responses:
            response = self._responses.popleft()
            if isinstance(response, Exception):
                raise response
            return response
        if response_schema is not None:
            return json.dumps({"weeks": []})
        first_line = prompt.strip().splitlines()[0] if prompt.strip() else ""
        return f"[stub] {first_line}"


# ── Gateway ──────────────────────────────────────────────────────────────────

class AIGateway:
    """Routes generation calls to the configured provider."""

    def __init__(self, provider: AIProvider, model: str, response_language: str = "Russian"):
        self.provider = provider
        self.model = model
        self.response_language = response_language

    @classmethod
    def from_settings(cls, settings) -> "AIGateway":
        provider_name = settings.AI_PROVIDER.lower()
        if provider_name == "gemini" and settings.GEMINI_API_KEY:
            provider: AIProvider = GeminiProvider(settings.GEMINI_API_KEY)
        else:
            if provider_name == "gemini":
                logger.warning("GEMINI_API_KEY is not set; falling back to the stub AI provider")
            provider = StubProvider()
        logger.info("AI gateway using provider=%s model=%s", provider.name, settings.AI_MODEL)
        return cls(provider, settings.AI_MODEL, settings.AI_RESPONSE_LANGUAGE)

    async def generate(
        self,
        prompt: str,
        *,
        images: Sequence[InlineImage] = (),
        history: Sequence[ChatMessage] = (),
        response_schema: dict[str, Any] | None = None,
        system_instruction: str | None = None,
        purpose: str = "general",
    ) -> str:
        """
        Generate text through the active provider.

        Raises:
            AIServiceError: If the provider fails
        """
        started = time.monotonic()
        try:
            text = await self.provider.generate(
                prompt,
                model=self.model,
                images=images,
                history=history,
                response_schema=response_schema,
                system_instruction=system_instruction,
            )
        except AIServiceError as e:
            logger.error("AI call failed purpose=%s provider=%s: %s", purpose, self.provider.name, e)
            raise
        latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "AI call purpose=%s provider=%s latency_ms=%d chars=%d",
            purpose,
            self.provider.name,
            latency_ms,
            len(text),
        )
        return text
