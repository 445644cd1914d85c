"""Generation pipeline: prompt in, stored emoji out.

:class:`GenerationPipeline` sequences one generation request end to end:

1. **Profile bootstrap**: create the caller's ``profiles`` row if absent.
2. **Validate prompt**: empty prompts fail before any external call.
3. **Configuration check**: a missing provider token fails before the
   provider is contacted.
4. **Invoke the provider** with the templated prompt.
5. **Materialize bytes** of the first output, normalized to PNG.
6. **Upload** under a fresh UUID key.
7. **Resolve** the object's public URL.
8. **Insert** the ``emojis`` row.

Each step awaits the previous one; there is no intra-request parallelism, no
retry and no timeout beyond the provider's per-call HTTP timeout.

If the metadata insert fails after the upload succeeded, the uploaded object
is removed again before the original error propagates.  The object key is
also stored on the record, so any object that escapes this cleanup can be
found by comparing bucket keys against ``emojis.storage_key``.

Usage
-----
::

    pipeline = GenerationPipeline(config, storage, provider)
    result = await pipeline.generate("user_123", "a happy cat")
    result.image_bytes   # PNG bytes for immediate display
    result.record.id     # new emoji id
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.errors import (
    ConfigurationMissing,
    StorageFailure,
    UpstreamProviderFailure,
)
from emojimaker.core.images import PNG_CONTENT_TYPE, ensure_png
from emojimaker.core.prompt_builder import build_prompt, clean_prompt
from emojimaker.core.providers import ImageProviderBase
from emojimaker.core.records import EmojiRecord, NewEmoji, UserProfile
from emojimaker.core.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of a successful generation."""

    image_bytes: bytes
    content_type: str
    record: EmojiRecord


def new_object_key() -> str:
    """Collision-resistant bucket key for one upload."""
    return f"{uuid.uuid4().hex}.png"


class GenerationPipeline:
    """Orchestrates profile bootstrap, generation, upload and metadata insert.

    Attributes:
        config: Application configuration (template, cache policy).
        storage: Storage backend for profiles, objects and emoji rows.
        provider: Image generation provider.
    """

    def __init__(
        self,
        config: EmojiMakerConfig,
        storage: StorageBackend,
        provider: ImageProviderBase,
    ) -> None:
        self.config = config
        self.storage = storage
        self.provider = provider

    def ensure_profile(self, user_id: str) -> UserProfile:
        """Return the caller's profile, creating it on first use.

        Raises:
            StorageFailure: If the profile cannot be read or created.
        """
        try:
            profile = self.storage.get_profile(user_id)
            if profile is None:
                logger.info(f"No profile for {user_id}, creating one")
                profile = self.storage.insert_profile(user_id)
        except StorageFailure as e:
            logger.error(f"Profile error for {user_id}: {e}")
            raise StorageFailure("Failed to process user profile") from e
        return profile

    async def generate(self, user_id: str, prompt: str | None) -> GenerationResult:
        """Run the full pipeline for one request.

        Args:
            user_id: Authenticated caller.
            prompt: Prompt as submitted; stored verbatim on the record.

        Returns:
            The PNG bytes and the inserted record.

        Raises:
            StorageFailure: Profile, upload or insert failure.
            ValidationFailed: Empty prompt.
            ConfigurationMissing: Provider credentials absent.
            UpstreamProviderFailure: Provider error or empty output.
        """
        self.ensure_profile(user_id)

        cleaned = clean_prompt(prompt)

        if not self.provider.is_configured():
            raise ConfigurationMissing(
                f"{self.provider.display_name} API token not configured"
            )

        compiled = build_prompt(cleaned, self.config.prompt_template)
        logger.info(f"Generating emoji for {user_id}: {compiled!r}")

        outputs = await self.provider.generate(compiled)
        if not outputs:
            raise UpstreamProviderFailure(
                f"No image data received from {self.provider.display_name}"
            )

        # First entry in provider order; no secondary sort
        output_id, image_ref = next(iter(outputs.items()))
        logger.debug(f"Using provider output {output_id}: {image_ref!r:.120}")

        image_bytes = ensure_png(await self.provider.fetch_bytes(image_ref))

        key = new_object_key()
        self.storage.upload_object(
            key,
            image_bytes,
            content_type=PNG_CONTENT_TYPE,
            cache_control=self.config.cache_control,
            upsert=True,
        )
        logger.info(f"Uploaded {len(image_bytes)} bytes as {key}")

        try:
            public_url = self.storage.get_public_url(key)
            record = self.storage.insert_emoji(
                NewEmoji(
                    image_url=public_url,
                    prompt=prompt,
                    creator_user_id=user_id,
                    storage_key=key,
                )
            )
        except Exception:
            self._discard_object(key)
            raise

        logger.info(f"Created emoji {record.id} for {user_id}")
        return GenerationResult(
            image_bytes=image_bytes,
            content_type=PNG_CONTENT_TYPE,
            record=record,
        )

    def _discard_object(self, key: str) -> None:
        """Remove an upload whose metadata row could not be written."""
        try:
            self.storage.remove_object(key)
            logger.warning(f"Removed orphaned upload {key} after metadata failure")
        except StorageFailure as e:
            logger.error(f"Could not remove orphaned upload {key}: {e}")
