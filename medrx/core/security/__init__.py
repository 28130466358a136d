from medrx.core.security.crypto import EncryptionError, SecretCipher
from medrx.core.security.dependencies import get_secret_cipher

__all__ = ["EncryptionError", "SecretCipher", "get_secret_cipher"]
