from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sfe.utils.dataModels import KDF_ITERATIONS, KEY_SIZE


def derive_key(password: str, salt: bytes) -> bytes:
    """key = PBKDF2-HMAC-SHA1(password, salt, 1000) -> 32 bytes"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=KEY_SIZE,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))
