from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken


class EncryptionError(ValueError):
    pass


class SecretCipher:
    """Fernet wrapper for credentials stored at rest (SMTP passwords)."""

    def __init__(self, fernet_key: str) -> None:
        try:
            self._fernet = Fernet(fernet_key.encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError("Encryption key is not a valid Fernet key") from exc

    def encrypt(self, plaintext: str | None) -> str | None:
        if plaintext is None:
            return None
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str | None) -> str | None:
        if ciphertext is None:
            return None
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Unable to decrypt stored secret") from exc
        return plaintext.decode("utf-8")
