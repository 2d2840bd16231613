"""Tests for application settings and token encryption."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography.fernet import Fernet
from pydantic import ValidationError

from sendany.core.config import GB, MB, Settings
from sendany.core.security import TokenCipher, TokenDecryptionError, get_token_cipher


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SENDANY_GOOGLE_CLIENT_ID", raising=False)
        settings = Settings(_env_file=None)

        assert settings.max_file_size == 100 * MB
        assert settings.max_workspace_size == 500 * MB
        assert settings.max_user_storage == 5 * GB
        assert settings.user_id_header == "X-SendAny-User"
        assert settings.google_oauth_configured is False

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SENDANY_MAX_FILE_SIZE", "1024")
        monkeypatch.setenv("SENDANY_CONFIG_PATH", str(tmp_path))
        monkeypatch.setenv("SENDANY_GOOGLE_CLIENT_ID", "id")
        monkeypatch.setenv("SENDANY_GOOGLE_CLIENT_SECRET", "secret")

        settings = Settings(_env_file=None)

        assert settings.max_file_size == 1024
        assert settings.db_path == Path(tmp_path) / "sendany.db"
        assert settings.google_oauth_configured is True

    def test_reaper_interval_bounds(self, monkeypatch):
        monkeypatch.setenv("SENDANY_REAPER_INTERVAL_MINUTES", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestTokenCipher:
    """Tests for token encryption at rest."""

    def test_round_trip_uses_fresh_ciphertext(self):
        cipher = TokenCipher(Fernet.generate_key())

        first = cipher.encrypt("ya29.token")
        second = cipher.encrypt("ya29.token")

        assert first != second
        assert cipher.decrypt(first) == "ya29.token"

    def test_foreign_ciphertext(self):
        cipher = TokenCipher(Fernet.generate_key())
        other = TokenCipher(Fernet.generate_key())

        with pytest.raises(TokenDecryptionError):
            cipher.decrypt(other.encrypt("token"))

    def test_global_cipher_is_shared(self):
        assert get_token_cipher() is get_token_cipher()
