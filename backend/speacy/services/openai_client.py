"""Shared OpenAI access: SDK client and raw realtime endpoints.

Every call is made once. Failures surface to the caller without retrying.
"""

from typing import Any

import httpx
from openai import AsyncOpenAI

from speacy.config import get_settings
from speacy.services.errors import LLMNotConfiguredError, UpstreamServiceError

settings = get_settings()


def extract_output_text(payload: Any) -> str:
    """
    Pull the text out of a Responses API result.

    Accepts the SDK object or its dict form; prefers the aggregated
    output_text and otherwise returns the first output_text content part.
    """
    if not isinstance(payload, dict):
        text = getattr(payload, "output_text", None)
        if isinstance(text, str):
            return text
        dump = getattr(payload, "model_dump", None)
        payload = dump() if callable(dump) else {}
    if isinstance(payload.get("output_text"), str):
        return payload["output_text"]
    for item in payload.get("output") or []:
        for content in (item or {}).get("content") or []:
            if content.get("type") == "output_text" and isinstance(content.get("text"), str):
                return content["text"]
    return ""


class OpenAIService:
    """Lazily built AsyncOpenAI client plus raw HTTP for realtime endpoints."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._client: AsyncOpenAI | None = None
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(settings.openai_api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.configured:
                raise LLMNotConfiguredError()
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
                http_client=httpx.AsyncClient(transport=self.transport) if self.transport else None,
            )
        return self._client

    @client.setter
    def client(self, value: AsyncOpenAI | None) -> None:
        self._client = value

    async def chat_json(self, *, model: str, system: str, user: str) -> str:
        """Single chat completion in JSON mode. Returns the raw message text."""
        completion = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
        )
        return completion.choices[0].message.content or ""

    async def respond(
        self,
        *,
        model: str,
        prompt: str,
        max_output_tokens: int,
        temperature: float = 0.2,
    ) -> str:
        """Single Responses API call. Returns its output text."""
        response = await self.client.responses.create(
            model=model,
            input=prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        return extract_output_text(response)

    async def post_realtime(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        POST to a realtime session endpoint (client_secrets, sessions).

        Raises UpstreamServiceError with the upstream body on non-2xx.
        """
        if not self.configured:
            raise LLMNotConfiguredError()
        async with httpx.AsyncClient(
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout_seconds,
            transport=self.transport,
        ) as http:
            try:
                response = await http.post(
                    path,
                    json=body,
                    headers={"Authorization": f"Bearer {settings.openai_api_key}"},
                )
            except httpx.HTTPError as e:
                raise UpstreamServiceError(f"OpenAI request to {path} failed: {e}") from e
        if response.is_error:
            raise UpstreamServiceError(
                f"OpenAI rejected {path}",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()


# Singleton instance
openai_service = OpenAIService()
