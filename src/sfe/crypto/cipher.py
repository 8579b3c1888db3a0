import logging
import os

from cryptography.hazmat.primitives import padding
from py3rijndael import RijndaelCbc, ZeroPadding
from typing import Callable

from sfe.crypto.hash import derive_key
from sfe.utils.dataModels import BLOCK_SIZE, IV_SIZE, SALT_SIZE
from sfe.utils.errors import CryptoFailure

logger = logging.getLogger(__name__)

RandomSource = Callable[[int], bytes]


def _rijndael(key: bytes, iv: bytes) -> RijndaelCbc:
    # PKCS#7 is done by cryptography. On encrypt the input is already block
    # aligned, so ZeroPadding adds nothing. On decrypt ZeroPadding strips
    # trailing zero bytes first; a valid PKCS#7 block never ends in zero, so
    # only a wrong key loses bytes there, and the unpadder then rejects it.
    return RijndaelCbc(key=key, iv=iv, padding=ZeroPadding(BLOCK_SIZE), block_size=BLOCK_SIZE)


def encrypt(plaintext: bytes, password: str, random_source: RandomSource = os.urandom) -> bytes:
    """Return salt || iv || ciphertext for ``plaintext`` under ``password``."""
    salt = random_source(SALT_SIZE)
    iv = random_source(IV_SIZE)
    key = derive_key(password, salt)

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()
    ct = _rijndael(key, iv).encrypt(padded)
    logger.debug("encrypted %d bytes into %d byte cipher segment", len(plaintext), SALT_SIZE + IV_SIZE + len(ct))
    return salt + iv + ct


def decrypt(blob: bytes, password: str) -> bytes:
    """Reverse of :func:`encrypt`.

    Raises:
        CryptoFailure: If the segment is truncated or the padding does not
            validate, which is how a wrong password shows up.
    """
    header = SALT_SIZE + IV_SIZE
    if len(blob) < header + BLOCK_SIZE:
        raise CryptoFailure("Cipher segment is too short")
    salt, iv, ct = blob[:SALT_SIZE], blob[SALT_SIZE:header], blob[header:]
    if len(ct) % BLOCK_SIZE:
        raise CryptoFailure("Ciphertext is not a whole number of blocks")

    key = derive_key(password, salt)
    try:
        padded = _rijndael(key, iv).decrypt(ct)
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise CryptoFailure("Invalid padding after decryption") from exc
