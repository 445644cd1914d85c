"""Exception hierarchy for Emoji Maker.

Every failure a request handler can report derives from
:class:`EmojiMakerError`.  Each subclass carries the HTTP status code the API
layer answers with, so route handlers never translate errors themselves: the
exception handler registered in :mod:`emojimaker.api.main` turns any
``EmojiMakerError`` into ``{"error": message}`` with the right status.

==========================  ======  ========================================
Exception                   Status  Raised when
==========================  ======  ========================================
AuthenticationMissing       401     the caller's identity cannot be resolved
ValidationFailed            400     empty prompt or malformed input
EmojiNotFound               404     the referenced emoji does not exist
UpstreamProviderFailure     500     provider error or empty/malformed output
StorageFailure              500     upload, insert or read error
ConfigurationMissing        500     a required token or setting is absent
==========================  ======  ========================================
"""

from __future__ import annotations


class EmojiMakerError(Exception):
    """Base class for errors surfaced to API callers.

    The message is returned verbatim in the JSON error body, so it should be
    readable by an end user.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationMissing(EmojiMakerError):
    """The request carries no valid identity."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ValidationFailed(EmojiMakerError):
    """User input failed validation."""

    status_code = 400


class EmojiNotFound(EmojiMakerError):
    """The referenced emoji record does not exist."""

    status_code = 404

    def __init__(self, emoji_id: str) -> None:
        super().__init__(f"Emoji not found: {emoji_id}")
        self.emoji_id = emoji_id


class UpstreamProviderFailure(EmojiMakerError):
    """The image generation provider failed or returned unusable output."""


class StorageFailure(EmojiMakerError):
    """The persistence layer rejected a read, write or upload."""


class ConfigurationMissing(EmojiMakerError):
    """A setting required to serve the request is not configured."""
