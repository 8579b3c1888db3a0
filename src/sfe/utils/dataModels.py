import json

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict

ENVELOPE_MAGIC = b"\xfa\x15\xec\x0d\xe5"
META_LENGTH_TAG = b"MetaLength:"
META_LENGTH_DELIMITER = b"|"
META_LENGTH_SCAN_LIMIT = 200  # bytes scanned past the tag before giving up

SALT_SIZE = 32
IV_SIZE = 32
BLOCK_SIZE = 32  # Rijndael with a 256-bit block
KEY_SIZE = 32
KDF_ITERATIONS = 1000

ENCODED_SUFFIX = ".encoded"
DECODED_SUFFIX = ".decoded"
BACKUP_SUFFIX = ".orig"


class MapMetadata(dict):
    """Schema-less metadata: any JSON object."""

    def to_bytes(self) -> bytes:
        return json.dumps(self, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "MapMetadata":
        return cls(obj)

    @classmethod
    def from_bytes(cls, b: bytes) -> "MapMetadata":
        return cls.from_dict(json.loads(b.decode("utf-8")))

    @classmethod
    def empty(cls) -> "MapMetadata":
        return cls()


# JSON keys kept PascalCase so envelopes from other implementations resolve.
_CRYPTO_METADATA_KEYS = {
    "encrypted_at": "EncryptedAt",
    "original_filename": "OriginalFilename",
    "machine_name": "MachineName",
    "author": "Author",
    "author_domain": "AuthorDomain",
    "ip_address": "IpAddress",
}


@dataclass
class CryptoMetadata:
    """File provenance: when, where and by whom a file was encrypted."""

    encrypted_at: str | None = None
    original_filename: str | None = None
    machine_name: str | None = None
    author: str | None = None
    author_domain: str | None = None
    ip_address: str | None = None

    @classmethod
    def create(cls, original_filename: str) -> "CryptoMetadata":
        from sfe.utils.helper import local_ip_address, machine_name, now_stamp, user_domain, user_name

        return cls(
            encrypted_at=now_stamp(),
            original_filename=original_filename,
            machine_name=machine_name(),
            author=user_name(),
            author_domain=user_domain(),
            ip_address=local_ip_address(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {_CRYPTO_METADATA_KEYS[k]: v for k, v in asdict(self).items()}

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "CryptoMetadata":
        kwargs = {}
        for f in fields(cls):
            key = _CRYPTO_METADATA_KEYS[f.name]
            if key in obj:
                kwargs[f.name] = obj[key]
            elif f.name in obj:
                kwargs[f.name] = obj[f.name]
        return cls(**kwargs)

    @classmethod
    def from_bytes(cls, b: bytes) -> "CryptoMetadata":
        return cls.from_dict(json.loads(b.decode("utf-8")))

    @classmethod
    def empty(cls) -> "CryptoMetadata":
        return cls()
