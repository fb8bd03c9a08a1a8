"""Chat-completion proxy.

Forwards a messages array to the configured OpenAI-compatible endpoint so
the API key stays on the server.
"""

from typing import Any, Optional

import httpx

from license_gateway.config import ConfigurationError
from license_gateway.logging_config import get_logger
from license_gateway.models.settings import ChatConfig

logger = get_logger(__name__)


class ChatUpstreamError(Exception):
    """Raised when the upstream completion API answers with an error."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ChatProxy:
    """Async proxy around the upstream chat-completions API."""

    def __init__(self, config: ChatConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Forward one completion request and return the upstream JSON.

        Raises:
            ConfigurationError: If no API key is configured
            ChatUpstreamError: If the upstream API fails or cannot be reached
        """
        if not self._config.api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable not set")

        payload = {
            "model": model or self._config.default_model,
            "messages": messages,
            "temperature": self._config.default_temperature if temperature is None else temperature,
        }
        headers = {"Authorization": f"Bearer {self._config.api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(self._config.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.post(self._config.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("chat_upstream_unreachable", error=str(e), error_type=type(e).__name__)
            raise ChatUpstreamError(500, "Internal server error") from e

        if response.is_success:
            logger.info("chat_completed", model=payload["model"], messages=len(messages))
            return response.json()

        try:
            upstream = response.json()
        except ValueError:
            upstream = {}

        logger.error("chat_upstream_error", status_code=response.status_code, model=payload["model"])

        if response.status_code == 401:
            raise ChatUpstreamError(401, "Invalid API key")
        if response.status_code == 429:
            raise ChatUpstreamError(429, "Rate limit exceeded")

        message = "OpenAI API error"
        if isinstance(upstream, dict) and isinstance(upstream.get("error"), dict):
            message = upstream["error"].get("message") or message
        raise ChatUpstreamError(response.status_code, message)
