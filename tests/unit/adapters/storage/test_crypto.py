"""Unit tests for credential encryption."""

from __future__ import annotations

import pytest

from kpiboard.adapters.datasource import Credentials
from kpiboard.adapters.storage import CredentialCipher


class TestCredentialCipher:
    """Tests for CredentialCipher."""

    def test_round_trip(self) -> None:
        """Test that decrypt reverses encrypt."""
        cipher = CredentialCipher(CredentialCipher.generate_key())
        credentials = Credentials(username="kpi", password="s3cret", api_key="abc")

        token = cipher.encrypt(credentials)

        assert "s3cret" not in token
        assert cipher.decrypt(token).reveal() == credentials.reveal()

    def test_wrong_key(self) -> None:
        """Test that a token from another key is rejected."""
        token = CredentialCipher(CredentialCipher.generate_key()).encrypt(
            Credentials(password="x")
        )

        with pytest.raises(ValueError, match="cannot be decrypted"):
            CredentialCipher(CredentialCipher.generate_key()).decrypt(token)

    def test_invalid_key(self) -> None:
        """Test that malformed keys are refused up front."""
        with pytest.raises(ValueError):
            CredentialCipher("not-a-key")
