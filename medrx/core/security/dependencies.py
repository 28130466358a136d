from medrx.core.config import settings
from medrx.core.security.crypto import SecretCipher


def get_secret_cipher() -> SecretCipher:
    key = (settings.master_encryption_key or "").strip()
    if not key or key == "replace_with_fernet_key":
        raise ValueError("MASTER_ENCRYPTION_KEY is not configured with a valid Fernet key")
    return SecretCipher(key)
