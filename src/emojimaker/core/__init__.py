"""Core functionality for emoji generation.

- **config**: Pydantic Settings configuration (``EMOJIMAKER_`` prefix)
- **errors**: Exception hierarchy mapped onto HTTP status codes
- **storage**: Storage backends (local SQLite + filesystem, Supabase)
- **identity**: Identity providers (Clerk JWT, trusted header)
- **providers**: Image generation providers (Replicate)
- **pipeline**: :class:`GenerationPipeline`, the generate orchestrator
- **likes**: :class:`LikeService`, the like/unlike handler

Architecture Overview
---------------------
Storage, identity and image providers are each chosen by a configuration
string through a :class:`~emojimaker.core.registry.BackendRegistry`.  The
pipeline and like service depend only on the abstract base classes, so tests
swap in local or fake implementations without touching the orchestration.
"""

from emojimaker.core.config import EmojiMakerConfig, config
from emojimaker.core.identity import IdentityProviderBase, identity_registry
from emojimaker.core.likes import LikeService
from emojimaker.core.pipeline import GenerationPipeline, GenerationResult
from emojimaker.core.providers import ImageProviderBase, provider_registry
from emojimaker.core.storage import StorageBackend, storage_registry

__all__ = [
    "EmojiMakerConfig",
    "config",
    "GenerationPipeline",
    "GenerationResult",
    "IdentityProviderBase",
    "ImageProviderBase",
    "LikeService",
    "StorageBackend",
    "identity_registry",
    "provider_registry",
    "storage_registry",
]
