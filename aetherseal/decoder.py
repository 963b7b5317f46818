"""
Aether Seal remote watermark decoder port.

The primary extraction tier delegates to a remote service that recovers the
invisible DWT watermark from pixel data. Implementations may raise on any
transport or protocol fault; the extractor turns every failure into a tier
miss.
"""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from aetherseal.config import DEFAULT_HTTP_TIMEOUT
from aetherseal.schemas import DecoderResponse

logger = logging.getLogger(__name__)


class WatermarkDecoderInterface(ABC):
    """Abstract interface for remote watermark decoders."""

    @abstractmethod
    async def decode(self, image_bytes: bytes) -> DecoderResponse:
        """
        Decode the watermark carried by an image.

        Raises:
            Exception: On any transport, status or schema failure.
        """
        pass


class HttpWatermarkDecoder(WatermarkDecoderInterface):
    """
    Watermark decoder reached over HTTP.

    Sends {"image": <base64>} and expects
    {"detected", "sealId", "confidence", "transforms"} back.

    Example:
        >>> async with HttpWatermarkDecoder("https://decoder.internal/decode") as decoder:
        ...     response = await decoder.decode(image_bytes)
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise ValueError("HttpWatermarkDecoder requires a decoder URL")
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client
        self._owns_client = False

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    async def decode(self, image_bytes: bytes) -> DecoderResponse:
        body = {"image": base64.b64encode(image_bytes).decode("ascii")}
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(self._url, json=body, headers=self._headers())
            response.raise_for_status()
            return DecoderResponse.model_validate(response.json())
        finally:
            if self._client is None:
                await client.aclose()
