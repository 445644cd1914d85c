"""Name-to-class registries for pluggable backends.

Storage backends, identity providers and image providers are all selected by a
configuration string.  Each family keeps its own :class:`BackendRegistry`
instance; concrete classes register themselves at import time:

    >>> from emojimaker.core.storage.base import storage_registry
    >>> storage_registry.list_available()
    ['local', 'supabase']
    >>> backend = storage_registry.instantiate("local", config)

Registering a custom backend:

    >>> @storage_registry.register
    ... class MyBackend(StorageBackend):
    ...     name = "mine"
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendRegistry(Generic[T]):
    """Registry for one family of interchangeable backends.

    Attributes:
        kind: Human-readable family name used in log and error messages.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._classes: dict[str, type[T]] = {}

    def register(self, backend_class: type[T]) -> type[T]:
        """Register a backend class under its ``name`` attribute.

        Returns the class unchanged so this can be used as a decorator.
        """
        backend_name = getattr(backend_class, "name")

        if backend_name in self._classes:
            logger.warning(f"{self.kind} '{backend_name}' is already registered, overwriting")

        self._classes[backend_name] = backend_class
        logger.debug(f"Registered {self.kind}: {backend_name}")
        return backend_class

    def instantiate(self, backend_name: str, *args: Any, **kwargs: Any) -> T:
        """Create an instance of a registered backend.

        Raises:
            KeyError: If ``backend_name`` is not registered.
        """
        if backend_name not in self._classes:
            available = ", ".join(self.list_available())
            raise KeyError(
                f"{self.kind} '{backend_name}' not found. Available: {available}"
            )

        instance = self._classes[backend_name](*args, **kwargs)
        logger.info(f"Instantiated {self.kind}: {backend_name}")
        return instance

    def list_available(self) -> list[str]:
        return list(self._classes.keys())
