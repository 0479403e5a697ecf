"""Fernet encryption of data source credentials at rest."""

from __future__ import annotations

import json

from cryptography.fernet import Fernet, InvalidToken

from kpiboard.adapters.datasource.types import Credentials


class CredentialCipher:
    """Encrypts a Credentials record into an opaque token and back."""

    def __init__(self, encryption_key: str | bytes):
        """Initialize the cipher.

        Args:
            encryption_key: A urlsafe base64 Fernet key.

        Raises:
            ValueError: If the key is not a valid Fernet key.
        """
        key = encryption_key.encode() if isinstance(encryption_key, str) else encryption_key
        self._fernet = Fernet(key)

    def encrypt(self, credentials: Credentials) -> str:
        """Encrypt the credential values that are set."""
        return self._fernet.encrypt(json.dumps(credentials.reveal()).encode()).decode()

    def decrypt(self, token: str) -> Credentials:
        """Decrypt a token produced by ``encrypt``.

        Raises:
            ValueError: If the token was not produced with this key.
        """
        try:
            decrypted = self._fernet.decrypt(token.encode())
        except InvalidToken as e:
            raise ValueError("credentials cannot be decrypted with the configured key") from e
        return Credentials.model_validate(json.loads(decrypted.decode()))

    @staticmethod
    def generate_key() -> str:
        """Generate a fresh key."""
        return Fernet.generate_key().decode()
