from __future__ import annotations

from cryptography.fernet import Fernet
import pytest

from medrx.core.security.crypto import EncryptionError, SecretCipher
from medrx.core.security.dependencies import get_secret_cipher


def test_secret_cipher_roundtrip() -> None:
    cipher = SecretCipher(Fernet.generate_key().decode())

    encrypted = cipher.encrypt("smtp-password")

    assert encrypted != "smtp-password"
    assert cipher.decrypt(encrypted) == "smtp-password"
    assert cipher.encrypt(None) is None
    assert cipher.decrypt(None) is None


def test_secret_cipher_invalid_token_raises() -> None:
    cipher = SecretCipher(Fernet.generate_key().decode())

    with pytest.raises(EncryptionError):
        cipher.decrypt("not-a-valid-token")


def test_secret_cipher_rejects_bad_key() -> None:
    with pytest.raises(EncryptionError):
        SecretCipher("short")


def test_get_secret_cipher_requires_env_key(monkeypatch: pytest.MonkeyPatch) -> None:
    from medrx.core.security import dependencies

    monkeypatch.setattr(dependencies.settings, "master_encryption_key", "")
    with pytest.raises(ValueError, match="MASTER_ENCRYPTION_KEY"):
        get_secret_cipher()

    monkeypatch.setattr(dependencies.settings, "master_encryption_key", "replace_with_fernet_key")
    with pytest.raises(ValueError, match="MASTER_ENCRYPTION_KEY"):
        get_secret_cipher()

    monkeypatch.setattr(dependencies.settings, "master_encryption_key", Fernet.generate_key().decode())
    assert isinstance(get_secret_cipher(), SecretCipher)
