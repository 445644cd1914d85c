"""Image generation providers.

A provider turns a compiled prompt into one or more image references and can
materialize a reference into raw bytes.  The generation pipeline only ever
sees the :class:`ImageProviderBase` interface; the concrete provider is chosen
by ``config.default_provider`` through :data:`provider_registry`.

Output Mapping
--------------
Providers return ``dict[str, ImageRef]`` keyed by output identifier, in the
order the upstream service produced them.  Replicate models return either a
single URL, a list of URLs or an object; :func:`normalize_output` maps all of
these onto the same shape (list index becomes the key).

Usage
-----
::

    provider = provider_registry.instantiate("replicate", config)
    outputs = await provider.generate("A TOK emoji of a happy cat")
    first_ref = next(iter(outputs.values()))
    data = await provider.fetch_bytes(first_ref)
    await provider.aclose()
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Any, Union

import httpx

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.errors import UpstreamProviderFailure
from emojimaker.core.registry import BackendRegistry

logger = logging.getLogger(__name__)

ImageRef = Union[str, bytes]

_TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


def normalize_output(output: Any) -> dict[str, ImageRef]:
    """Map a raw provider output onto ``{output_id: image_ref}``.

    Args:
        output: ``None``, a URL string, raw bytes, a list of those, or a
            mapping of id to those.

    Returns:
        Ordered mapping preserving the provider's order.  Empty when the
        provider produced nothing.

    Raises:
        UpstreamProviderFailure: If the output has an unrecognised shape.
    """
    if output is None:
        return {}
    if isinstance(output, (str, bytes)):
        return {"0": output}
    if isinstance(output, dict):
        return {str(key): value for key, value in output.items()}
    if isinstance(output, (list, tuple)):
        return {str(index): value for index, value in enumerate(output)}
    raise UpstreamProviderFailure(
        f"Unexpected output format from image provider: {type(output).__name__}"
    )


class ImageProviderBase(ABC):
    """Abstract base class for image generation providers.

    Attributes
    ----------
    name : str
        Registry name, matched against ``config.default_provider``
    display_name : str
        Name used in user-facing error messages
    """

    name: str = "base"
    display_name: str = "image provider"

    def __init__(self, config: EmojiMakerConfig) -> None:
        self.config = config

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when every credential the provider needs is present."""

    @abstractmethod
    async def generate(self, prompt: str) -> dict[str, ImageRef]:
        """Run the model on ``prompt`` and return its output mapping."""

    async def fetch_bytes(self, ref: ImageRef) -> bytes:
        """Materialize one image reference into raw bytes.

        Accepts raw bytes, ``data:`` URIs and HTTP(S) URLs.
        """
        if isinstance(ref, bytes):
            return ref
        if not isinstance(ref, str) or not ref:
            raise UpstreamProviderFailure(
                f"Malformed image reference from {self.display_name}: {ref!r}"
            )
        if ref.startswith("data:"):
            return _decode_data_uri(ref)
        return await self._download(ref)

    @abstractmethod
    async def _download(self, url: str) -> bytes:
        """Fetch the bytes behind an image URL."""

    async def aclose(self) -> None:
        """Release network resources."""


def _decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not payload:
        raise UpstreamProviderFailure("Malformed data URI from image provider")
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=True)
        return payload.encode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise UpstreamProviderFailure(f"Malformed data URI from image provider: {e}") from e


# Global provider registry
provider_registry: BackendRegistry[ImageProviderBase] = BackendRegistry("image provider")


@provider_registry.register
class ReplicateProvider(ImageProviderBase):
    """Replicate predictions API client.

    Creates a prediction for the pinned model version with ``Prefer: wait`` so
    that short runs complete in a single round trip, then polls the
    prediction's ``get`` URL until it reaches a terminal status.

    Args:
        config: Configuration providing the token, model version and timeouts.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            backed by ``httpx.MockTransport``).
    """

    name = "replicate"
    display_name = "Replicate"

    def __init__(
        self,
        config: EmojiMakerConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config)
        self.api_base = config.replicate_api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=config.provider_timeout,
            follow_redirects=True,
        )

    def is_configured(self) -> bool:
        return self.config.replicate_token() is not None

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.replicate_token()}"}

    def build_input(self, prompt: str) -> dict[str, Any]:
        """Model input for a compiled prompt."""
        return {
            "prompt": prompt,
            "apply_watermark": self.config.apply_watermark,
        }

    async def _call(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> dict:
        try:
            response = await self._client.request(
                method, url, headers={**self._auth_headers(), **(headers or {})}, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(f"Replicate request failed: {e}")
            raise UpstreamProviderFailure(f"Replicate request failed: {e}") from e

        if response.is_error:
            detail = response.text
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    detail = payload.get("detail") or payload.get("title") or detail
            except ValueError:
                pass
            raise UpstreamProviderFailure(f"Replicate error ({response.status_code}): {detail}")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamProviderFailure("Replicate returned a non-JSON response") from e

    async def generate(self, prompt: str) -> dict[str, ImageRef]:
        model_input = self.build_input(prompt)
        logger.info(f"Creating Replicate prediction for {self.config.replicate_model}")
        logger.debug(f"Replicate input: {model_input}")

        prediction = await self._call(
            "POST",
            f"{self.api_base}/predictions",
            headers={"Prefer": "wait"},
            json={"version": self.config.replicate_version, "input": model_input},
        )

        while prediction.get("status") not in _TERMINAL_STATUSES:
            await asyncio.sleep(self.config.provider_poll_interval)
            poll_url = (prediction.get("urls") or {}).get("get") or (
                f"{self.api_base}/predictions/{prediction.get('id')}"
            )
            prediction = await self._call("GET", poll_url)
            logger.debug(f"Prediction {prediction.get('id')} status: {prediction.get('status')}")

        status = prediction.get("status")
        if status != "succeeded":
            error = prediction.get("error") or status
            raise UpstreamProviderFailure(f"Replicate prediction {status}: {error}")

        logger.info(f"Prediction {prediction.get('id')} succeeded")
        return normalize_output(prediction.get("output"))

    async def _download(self, url: str) -> bytes:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch generated image {url}: {e}")
            raise UpstreamProviderFailure(f"Failed to fetch generated image: {e}") from e
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
