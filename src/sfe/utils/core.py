import argparse
import json
import logging
import os
import sys

from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Optional

from sfe.storage import envelope
from sfe.storage.transaction import (
    apply_decrypt,
    apply_encrypt,
    check_file_path,
    open_envelope,
    read_file,
    seal_envelope,
)
from sfe.utils.dataModels import ENVELOPE_MAGIC, CryptoMetadata, MapMetadata
from sfe.utils.errors import FileEncryptionFailure, SfeError
from sfe.utils.metadata import resolve

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------- bytes API

def encrypt(metadata: Any, content: bytes, password: str, encrypt_metadata: bool = False) -> bytes:
    """Wrap ``content`` and ``metadata`` into an envelope encrypted with ``password``.

    With ``encrypt_metadata`` the metadata segment is encrypted as well and
    reading it back needs the password.
    """
    return seal_envelope(metadata, content, password, encrypt_metadata)


def decrypt(content: bytes, password: str, model: Optional[type] = None) -> tuple[bytes, Any]:
    """Return (plaintext, metadata). Input that is not an envelope comes back unchanged."""
    return open_envelope(content, password, model)


def decrypt_content(content: bytes, password: str) -> bytes:
    plain, _ = open_envelope(content, password)
    return plain


# ----------------------------------------------------------------- file API

def encrypt_file(metadata: Any, path: str | os.PathLike, password: str, encrypt_metadata: bool = False) -> None:
    apply_encrypt(path, metadata, password, encrypt_metadata)


def decrypt_file(path: str | os.PathLike, password: str, model: Optional[type] = None) -> Any:
    return apply_decrypt(path, password, model)


def _as_path(source: Any) -> Optional[str]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return None
    return os.fspath(source) if source else ""


def get_metadata(source: Any, password: Optional[str] = None, model: Optional[type] = None) -> Any:
    """Metadata of envelope bytes or of an encrypted file."""
    path = _as_path(source)
    if path is None:
        return resolve(bytes(source), password, model)
    check_file_path(path)
    logger.debug("reading metadata from %s", path)
    return resolve(read_file(path), password, model)


def is_encrypted(source: Any) -> bool:
    path = _as_path(source)
    if path is None:
        return envelope.is_envelope(bytes(source))
    check_file_path(path)
    try:
        with open(path, "rb") as f:
            head = f.read(len(ENVELOPE_MAGIC))
    except OSError as exc:
        raise FileEncryptionFailure(f"Can not read file: {path}", exc, path) from exc
    return envelope.is_envelope(head)


# ---------------------------------------------------------------- CLI glue

def _metadata_json(meta: Any) -> str:
    if is_dataclass(meta):
        meta = meta.to_dict() if hasattr(meta, "to_dict") else asdict(meta)
    return json.dumps(meta, ensure_ascii=False, indent=2)


def _parse_pairs(pairs: list[str] | None) -> MapMetadata:
    out = MapMetadata()
    for item in pairs or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got: {item}")
        out[key] = value
    return out


def _fail(msg: str) -> None:
    print(f"[!] {msg}", file=sys.stderr)
    sys.exit(1)


def cmd_encrypt(args: argparse.Namespace) -> None:
    path = Path(args.path)
    try:
        extra = _parse_pairs(args.meta)
    except ValueError as e:
        _fail(str(e))
        return

    meta: Any = None
    if args.provenance:
        meta = CryptoMetadata.create(path.name).to_dict()
    if extra:
        meta = {**(meta or {}), **extra}

    try:
        encrypt_file(meta, path, args.passphrase, args.encrypt_metadata)
    except SfeError as e:
        _fail(str(e))
    print(f"[+] Encrypted {path}")


def cmd_decrypt(args: argparse.Namespace) -> None:
    path = Path(args.path)
    try:
        meta = decrypt_file(path, args.passphrase)
    except SfeError as e:
        _fail(str(e))
        return
    print(f"[+] Decrypted {path}")
    if meta is not None:
        print(_metadata_json(meta))


def cmd_meta(args: argparse.Namespace) -> None:
    try:
        meta = get_metadata(args.path, args.passphrase)
    except SfeError as e:
        _fail(str(e))
        return
    if meta is None:
        print("(no metadata)")
        return
    print(_metadata_json(meta))


def cmd_check(args: argparse.Namespace) -> None:
    try:
        encrypted = is_encrypted(args.path)
    except SfeError as e:
        _fail(str(e))
        return
    print("encrypted" if encrypted else "not encrypted")
