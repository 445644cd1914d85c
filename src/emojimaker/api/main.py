"""Emoji Maker — FastAPI Application.

This module is the single entry point for the web application.  It defines
the ``create_app()`` application factory, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application follows a stateless REST pattern:

- **Services** (storage backend, identity provider, image provider,
  generation pipeline, like service) are built once per application and kept
  on ``app.state``.  Every piece of shared state lives in storage.
- **Errors** are raised as :class:`~emojimaker.core.errors.EmojiMakerError`
  subclasses and converted to ``{"error": message}`` JSON by a single
  exception handler.
- **Static assets** (the local storage bucket) are served by FastAPI's
  ``StaticFiles`` middleware at ``/static``.

Endpoints
---------
========  ==============================  ===================================
Method    Path                            Purpose
========  ==============================  ===================================
POST      ``/api/generate``               Generate an emoji, return PNG bytes
POST      ``/api/emojis/like``            Like or unlike an emoji
GET       ``/api/emojis``                 Paginated gallery listing
GET       ``/api/emojis/{id}``            Single gallery entry
GET       ``/api/emojis/{id}/download``   PNG as an attachment
GET       ``/api/health``                 Version and configured backends
========  ==============================  ===================================

Usage
-----
CLI (installed entry point)::

    emojimaker

Direct invocation::

    python -m emojimaker.api.main

Any ASGI server::

    uvicorn --factory emojimaker.api.main:create_app
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError

from emojimaker import __version__
from emojimaker.api.gallery_store import filter_emojis, paginate_entries
from emojimaker.api.models import (
    EmojiOut,
    EmojiPage,
    ErrorResponse,
    GenerateRequest,
    LikeRequest,
    LikeResponse,
)
from emojimaker.core.config import EmojiMakerConfig, config as default_config
from emojimaker.core.errors import (
    AuthenticationMissing,
    EmojiMakerError,
    EmojiNotFound,
    StorageFailure,
    ValidationFailed,
)
from emojimaker.core.identity import IdentityProviderBase, create_identity_provider
from emojimaker.core.images import PNG_CONTENT_TYPE, content_disposition
from emojimaker.core.likes import LikeService
from emojimaker.core.pipeline import GenerationPipeline
from emojimaker.core.providers import ImageProviderBase, provider_registry
from emojimaker.core.storage import StorageBackend, create_storage

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Request-scoped dependencies.
# ---------------------------------------------------------------------------


def current_user(request: Request) -> str:
    """Resolve the caller, raising :class:`AuthenticationMissing` if anonymous."""
    identity: IdentityProviderBase = request.app.state.identity
    return identity.require(request)


def optional_user(request: Request) -> str | None:
    """Resolve the caller, or None for anonymous gallery browsing."""
    identity: IdentityProviderBase = request.app.state.identity
    return identity.resolve(request)


BodyT = TypeVar("BodyT", bound=BaseModel)


async def read_body(request: Request, model: type[BodyT]) -> BodyT:
    """Parse the JSON body into ``model``.

    Write routes call this after ``current_user`` has run, so an anonymous
    request is rejected with 401 whatever its body looks like.

    Raises:
        ValidationFailed: 400 if the body is not JSON or does not match.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationFailed("Invalid request: body is not valid JSON") from e

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid request: {_format_errors(e.errors())}") from e


def _json_body(model: type[BaseModel]) -> dict[str, Any]:
    """OpenAPI request body for routes that parse it with :func:`read_body`."""
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


def _format_errors(errors: Sequence[dict[str, Any]]) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in errors
    )


async def _handle_emojimaker_error(request: Request, exc: EmojiMakerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": f"Invalid request: {_format_errors(exc.errors())}"}, status_code=400)


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    config: EmojiMakerConfig | None = None,
    *,
    storage: StorageBackend | None = None,
    provider: ImageProviderBase | None = None,
    identity: IdentityProviderBase | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Any service not passed in is created from ``config`` through its
    registry.  Tests pass fakes for the provider and identity.

    Args:
        config: Configuration; defaults to the global instance.
        storage: Storage backend override.
        provider: Image provider override.
        identity: Identity provider override.

    Returns:
        The configured application.
    """
    config = config or default_config
    storage = storage or create_storage(config)
    provider = provider or provider_registry.instantiate(config.default_provider, config)
    identity = identity or create_identity_provider(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Release service resources on shutdown."""
        logger.info(
            f"Emoji Maker {__version__} started "
            f"(storage={storage.name}, identity={identity.name}, provider={provider.name})"
        )

        yield  # Application runs here.

        await provider.aclose()
        storage.close()
        logger.info("Services closed on shutdown.")

    app = FastAPI(
        title="Emoji Maker",
        description="Generate custom emojis from a text prompt, then browse and like them.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.storage = storage
    app.state.provider = provider
    app.state.identity = identity
    app.state.pipeline = GenerationPipeline(config, storage, provider)
    app.state.likes = LikeService(storage, trust_client_state=config.trust_client_like_state)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Emoji-Id"],
    )

    app.add_exception_handler(EmojiMakerError, _handle_emojimaker_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)

    # The local storage backend's bucket lives under static_dir, so public
    # URLs resolve through this mount.
    app.mount("/static", StaticFiles(directory=str(config.static_dir)), name="static")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    """Attach every API route to ``app``."""

    @app.post(
        "/api/generate",
        response_class=Response,
        responses={200: {"content": {PNG_CONTENT_TYPE: {}}}, **_ERROR_RESPONSES},
        openapi_extra=_json_body(GenerateRequest),
    )
    async def generate_emoji(
        request: Request,
        user_id: str = Depends(current_user),
    ) -> Response:
        """Generate an emoji and return its PNG bytes.

        The new record's id is returned in the ``X-Emoji-Id`` header so the
        client can like the emoji without refetching the gallery.

        Raises:
            ValidationFailed: 400 for a missing or empty prompt.
            EmojiMakerError: 500 for profile, provider or storage failures.
        """
        req = await read_body(request, GenerateRequest)
        pipeline: GenerationPipeline = request.app.state.pipeline
        try:
            result = await pipeline.generate(user_id, req.prompt)
        except EmojiMakerError:
            raise
        except Exception as e:
            logger.error(f"Error generating emoji: {e}", exc_info=True)
            return JSONResponse({"error": str(e) or "Failed to generate emoji"}, status_code=500)

        return Response(
            content=result.image_bytes,
            media_type=result.content_type,
            headers={"X-Emoji-Id": result.record.id},
        )

    @app.post(
        "/api/emojis/like",
        response_model=LikeResponse,
        responses=_ERROR_RESPONSES,
        openapi_extra=_json_body(LikeRequest),
    )
    async def toggle_like(
        request: Request,
        user_id: str = Depends(current_user),
    ) -> LikeResponse | JSONResponse:
        """Like or unlike an emoji and return the new count.

        Raises:
            ValidationFailed: 400 for a malformed body.
            EmojiNotFound: 404 if the emoji does not exist.
            StorageFailure: 500 if the update fails.
        """
        req = await read_body(request, LikeRequest)
        likes: LikeService = request.app.state.likes
        try:
            new_count = likes.toggle(user_id, req.emoji_id, req.is_liked)
        except EmojiMakerError:
            raise
        except Exception as e:
            logger.error(f"Error updating like: {e}", exc_info=True)
            return JSONResponse({"error": "Failed to update like"}, status_code=500)

        return LikeResponse(success=True, likes=new_count)

    @app.get("/api/emojis", response_model=EmojiPage)
    async def list_emojis(
        request: Request,
        page: int = 1,
        per_page: int = 20,
        mine: bool = False,
        liked: bool = False,
        user_id: str | None = Depends(optional_user),
    ) -> EmojiPage:
        """Return a newest-first page of emojis.

        Args:
            page: Page number (1-indexed, clamped).
            per_page: Items per page (clamped to 1..100).
            mine: Only emojis created by the caller.
            liked: Only emojis the caller currently likes.

        Raises:
            AuthenticationMissing: 401 if ``mine`` or ``liked`` is requested
                anonymously.
        """
        if (mine or liked) and user_id is None:
            raise AuthenticationMissing()

        storage: StorageBackend = request.app.state.storage
        records = storage.list_emojis(creator_user_id=user_id if mine else None)
        liked_ids = storage.liked_emoji_ids(user_id) if user_id else set()
        records = filter_emojis(records, liked_ids=liked_ids, liked_only=liked)

        paged = paginate_entries(records, page, per_page)
        return EmojiPage(
            total=paged["total"],
            page=paged["page"],
            per_page=paged["per_page"],
            pages=paged["pages"],
            emojis=[EmojiOut.from_record(record, liked_ids) for record in paged["items"]],
        )

    @app.get("/api/emojis/{emoji_id}", response_model=EmojiOut)
    async def get_emoji(
        emoji_id: str,
        request: Request,
        user_id: str | None = Depends(optional_user),
    ) -> EmojiOut:
        """Return a single emoji.

        Raises:
            EmojiNotFound: 404 if the emoji does not exist.
        """
        storage: StorageBackend = request.app.state.storage
        record = storage.get_emoji(emoji_id)
        if record is None:
            raise EmojiNotFound(emoji_id)
        liked_ids = storage.liked_emoji_ids(user_id) if user_id else set()
        return EmojiOut.from_record(record, liked_ids)

    @app.get("/api/emojis/{emoji_id}/download", response_class=Response)
    async def download_emoji(emoji_id: str, request: Request) -> Response:
        """Return the emoji PNG as a file attachment named after its prompt.

        Raises:
            EmojiNotFound: 404 if the emoji does not exist.
            StorageFailure: 500 if the object cannot be read.
        """
        storage: StorageBackend = request.app.state.storage
        record = storage.get_emoji(emoji_id)
        if record is None:
            raise EmojiNotFound(emoji_id)
        if not record.storage_key:
            raise StorageFailure(f"Emoji {emoji_id} has no stored image")

        data = storage.read_object(record.storage_key)
        return Response(
            content=data,
            media_type=PNG_CONTENT_TYPE,
            headers={"Content-Disposition": content_disposition(record.prompt)},
        )

    @app.get("/api/health")
    async def health(request: Request) -> dict:
        """Return the version and which backends are active."""
        state = request.app.state
        return {
            "version": __version__,
            "storage_backend": state.storage.name,
            "identity_backend": state.identity.name,
            "provider": state.provider.name,
            "provider_configured": state.provider.is_configured(),
        }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~emojimaker.core.config.config`
    (``EMOJIMAKER_SERVER_HOST``, ``EMOJIMAKER_SERVER_PORT``,
    ``EMOJIMAKER_LOG_LEVEL``).  Defaults to ``0.0.0.0:8000``.

    Registered as the ``emojimaker`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=default_config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "emojimaker.api.main:create_app",
        factory=True,
        host=default_config.server_host,
        port=default_config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
