"""Tests for emojimaker.core.config — configuration management.

Tests cover:
- Default values for the provider, storage and identity settings.
- Environment variable overrides via the EMOJIMAKER_ prefix.
- The plain REPLICATE_API_TOKEN fallback.
- Automatic directory creation and derived paths.
- Pydantic validation constraints.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from emojimaker.core.config import EmojiMakerConfig


def _fresh(temp_dir: Path, **kwargs) -> EmojiMakerConfig:
    return EmojiMakerConfig(
        _env_file=None,
        data_dir=temp_dir / "data",
        static_dir=temp_dir / "static",
        **kwargs,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable that could leak into a config under test."""
    for name in (
        "REPLICATE_API_TOKEN",
        "EMOJIMAKER_REPLICATE_API_TOKEN",
        "EMOJIMAKER_STORAGE_BACKEND",
        "EMOJIMAKER_IDENTITY_BACKEND",
        "EMOJIMAKER_PROMPT_TEMPLATE",
        "EMOJIMAKER_TRUST_CLIENT_LIKE_STATE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ---------------------------------------------------------------------------
# Defaults.
# ---------------------------------------------------------------------------


class TestConfigDefaults:
    """Verify that EmojiMakerConfig provides sensible defaults."""

    def test_default_model_and_template(self, clean_env, temp_dir):
        cfg = _fresh(temp_dir)
        assert cfg.replicate_model == "fofr/sdxl-emoji"
        assert cfg.prompt_template == "A TOK emoji of {prompt}"
        assert cfg.apply_watermark is False

    def test_default_backends(self, clean_env, temp_dir):
        """Local storage and Clerk identity by default."""
        cfg = _fresh(temp_dir)
        assert cfg.storage_backend == "local"
        assert cfg.identity_backend == "clerk"
        assert cfg.default_provider == "replicate"

    def test_default_bucket_policy(self, clean_env, temp_dir):
        cfg = _fresh(temp_dir)
        assert cfg.bucket_name == "emojis"
        assert cfg.cache_control == "3600"

    def test_client_like_state_trusted_by_default(self, clean_env, temp_dir):
        assert _fresh(temp_dir).trust_client_like_state is True

    def test_token_absent_by_default(self, clean_env, temp_dir):
        cfg = _fresh(temp_dir)
        assert cfg.replicate_api_token is None
        assert cfg.replicate_token() is None


# ---------------------------------------------------------------------------
# Environment overrides.
# ---------------------------------------------------------------------------


class TestEnvironmentOverrides:
    """Values come from EMOJIMAKER_* variables."""

    def test_prefixed_override(self, clean_env, temp_dir):
        clean_env.setenv("EMOJIMAKER_STORAGE_BACKEND", "supabase")
        clean_env.setenv("EMOJIMAKER_IDENTITY_BACKEND", "header")
        cfg = _fresh(temp_dir)
        assert cfg.storage_backend == "supabase"
        assert cfg.identity_backend == "header"

    def test_plain_replicate_token_is_accepted(self, clean_env, temp_dir):
        clean_env.setenv("REPLICATE_API_TOKEN", "r8_plain")
        assert _fresh(temp_dir).replicate_token() == "r8_plain"

    def test_prefixed_replicate_token_is_accepted(self, clean_env, temp_dir):
        clean_env.setenv("EMOJIMAKER_REPLICATE_API_TOKEN", "r8_prefixed")
        assert _fresh(temp_dir).replicate_token() == "r8_prefixed"

    def test_blank_token_counts_as_missing(self, clean_env, temp_dir):
        cfg = _fresh(temp_dir, replicate_api_token="   ")
        assert cfg.replicate_token() is None

    def test_token_is_not_leaked_in_repr(self, clean_env, temp_dir):
        cfg = _fresh(temp_dir, replicate_api_token="r8_secret")
        assert "r8_secret" not in repr(cfg)

    def test_trust_flag_override(self, clean_env, temp_dir):
        clean_env.setenv("EMOJIMAKER_TRUST_CLIENT_LIKE_STATE", "false")
        assert _fresh(temp_dir).trust_client_like_state is False


# ---------------------------------------------------------------------------
# Directories and derived paths.
# ---------------------------------------------------------------------------


class TestDirectories:
    def test_directories_created(self, temp_dir):
        cfg = _fresh(temp_dir)
        assert cfg.data_dir.is_dir()
        assert cfg.static_dir.is_dir()

    def test_database_path(self, temp_dir):
        cfg = _fresh(temp_dir)
        assert cfg.database_path == temp_dir / "data" / "emojimaker.db"

    def test_bucket_dir_under_static(self, temp_dir):
        cfg = _fresh(temp_dir, bucket_name="pngs")
        assert cfg.bucket_dir == temp_dir / "static" / "pngs"


# ---------------------------------------------------------------------------
# Validation.
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_storage_backend_rejected(self, temp_dir):
        with pytest.raises(ValidationError):
            _fresh(temp_dir, storage_backend="s3")

    def test_privileged_port_rejected(self, temp_dir):
        with pytest.raises(ValidationError):
            _fresh(temp_dir, server_port=80)

    def test_negative_poll_interval_rejected(self, temp_dir):
        with pytest.raises(ValidationError):
            _fresh(temp_dir, provider_poll_interval=-1)
