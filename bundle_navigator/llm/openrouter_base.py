"""
OpenRouter Base Client
======================

Shared async HTTP client for the OpenRouter chat completions API.
"""

import httpx
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 425, 429}


@dataclass
class LLMCallResult:
    """Result from an LLM API call"""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Optional[Dict] = None
    success: bool = True
    error: Optional[str] = None
    status_code: Optional[int] = None
    transient: bool = False


class OpenRouterBaseClient:
    """
    Base async client for OpenRouter API.

    Never raises for HTTP or transport failures: the outcome is reported on
    LLMCallResult, with `transient` set when a retry may succeed.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: int = 60,
        app_name: str = "Bundle Navigator",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.url = base_url.rstrip("/") + "/chat/completions"
        self.timeout = timeout
        self.app_name = app_name
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def call(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict] = None,
        temperature: float = 0,
        max_tokens: int = 2048
    ) -> LLMCallResult:
        """
        Make an API call to OpenRouter.

        Args:
            messages: List of message dicts with role and content
            response_format: Optional format spec (e.g., {"type": "json_object"})
            temperature: Sampling temperature (0 = deterministic)
            max_tokens: Maximum response tokens

        Returns:
            LLMCallResult with content or error
        """
        if not self.api_key:
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error="API key not configured"
            )

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if response_format:
            payload["response_format"] = response_format

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.app_name
        }

        try:
            client = await self._get_client()
            response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

            try:
                content = data["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError) as e:
                logger.error(f"OpenRouter response missing content: {e}")
                return LLMCallResult(
                    content="",
                    model=self.model,
                    success=False,
                    error=f"Response missing content: {e}",
                    raw_response=data,
                    status_code=response.status_code,
                )

            usage = data.get("usage") or {}

            return LLMCallResult(
                content=content or "",
                model=self.model,
                input_tokens=usage.get("prompt_tokens", 0),
                output_tokens=usage.get("completion_tokens", 0),
                raw_response=data,
                success=True,
                status_code=response.status_code,
            )

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"OpenRouter API error: {status}")
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error=f"HTTP {status}: {e.response.text[:200]}",
                status_code=status,
                transient=status in TRANSIENT_STATUS_CODES or status >= 500,
            )
        except httpx.TransportError as e:
            # Timeouts, connection resets, DNS failures
            logger.warning(f"OpenRouter transport failure: {e!r}")
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error=f"{type(e).__name__}: {e}",
                transient=True,
            )
        except ValueError as e:
            logger.error(f"OpenRouter returned invalid JSON: {e}")
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error=f"Invalid JSON response: {e}",
            )
