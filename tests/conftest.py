"""Shared pytest fixtures for Emoji Maker tests."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from emojimaker.api.main import create_app
from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.identity import HeaderIdentityProvider
from emojimaker.core.providers import ImageProviderBase, ImageRef
from emojimaker.core.records import NewEmoji
from emojimaker.core.storage.local import LocalStorageBackend


def make_png(color: tuple[int, int, int, int] = (255, 204, 0, 255), size: int = 8) -> bytes:
    """Encode a small solid-colour PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeProvider(ImageProviderBase):
    """In-memory image provider.

    ``outputs`` is returned from every ``generate`` call; URL references are
    resolved through ``downloads``.  Every compiled prompt is recorded.
    """

    name = "fake"
    display_name = "Replicate"

    def __init__(self, config: EmojiMakerConfig, image: bytes | None = None) -> None:
        super().__init__(config)
        self.image = image or make_png()
        self.outputs: dict[str, ImageRef] = {"0": "https://images.test/out-0.png"}
        self.downloads: dict[str, bytes] = {"https://images.test/out-0.png": self.image}
        self.prompts: list[str] = []
        self.configured = True
        self.closed = False

    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt: str) -> dict[str, ImageRef]:
        self.prompts.append(prompt)
        return dict(self.outputs)

    async def _download(self, url: str) -> bytes:
        return self.downloads[url]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> EmojiMakerConfig:
    """Create a test configuration with temporary directories.

    Uses the local storage backend, the trusted-header identity provider and
    a dummy Replicate token so the configuration check passes.
    """
    return EmojiMakerConfig(
        _env_file=None,
        data_dir=temp_dir / "data",
        static_dir=temp_dir / "static",
        replicate_api_token="r8_test_token",
        storage_backend="local",
        identity_backend="header",
        provider_poll_interval=0,
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def storage(test_config: EmojiMakerConfig) -> LocalStorageBackend:
    return LocalStorageBackend(test_config)


@pytest.fixture
def fake_provider(test_config: EmojiMakerConfig, png_bytes: bytes) -> FakeProvider:
    return FakeProvider(test_config, image=png_bytes)


@pytest.fixture
def app(test_config, storage, fake_provider):
    """Application wired to local storage, the fake provider and header identity."""
    return create_app(
        test_config,
        storage=storage,
        provider=fake_provider,
        identity=HeaderIdentityProvider(test_config),
    )


@pytest.fixture
def test_client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-User-Id": "u1"}


@pytest.fixture
def seeded_emoji(storage: LocalStorageBackend):
    """An existing emoji created by ``creator`` with zero likes."""
    storage.insert_profile("creator")
    return storage.insert_emoji(
        NewEmoji(
            image_url="/static/emojis/seed.png",
            prompt="a sleepy fox",
            creator_user_id="creator",
            storage_key="seed.png",
        )
    )
