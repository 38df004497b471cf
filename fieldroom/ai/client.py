"""Chat-completions client for the AI participant."""
import logging
from typing import Dict, List, Optional

import httpx

from fieldroom.config import RoomConfig
from fieldroom.errors import UpstreamError

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "No response"


class CompletionClient:
    """POSTs role-tagged messages to an OpenAI-style /v1/chat/completions endpoint."""

    def __init__(self, config: RoomConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.completion_timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Request a completion.

        Args:
            messages: Role-tagged messages, system first

        Returns:
            Text of the first choice, or a fallback string when it is missing

        Raises:
            UpstreamError: non-success status or unreachable endpoint
        """
        headers = {"Content-Type": "application/json"}
        if self.config.completion_api_token:
            headers["Authorization"] = f"Bearer {self.config.completion_api_token}"

        payload = {
            "model": self.config.completion_model,
            "user": self.config.ai_session_user,
            "messages": messages,
        }

        try:
            response = await self._get_client().post(
                self.config.completions_endpoint,
                json=payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(None, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None

        if not content:
            logger.warning("Completion returned no content, using fallback")
            return FALLBACK_RESPONSE
        return content
