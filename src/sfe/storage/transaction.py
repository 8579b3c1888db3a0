"""
In-place file rewrite via temp file + two renames.

States (one transaction per call):
    PENDING -> VALIDATED -> TRANSFORMED -> SWAPPED -> COMMITTED
                  \\            \\            \\          \\
                   +------------+------------+----------+--> FAILED

    validate   path names an existing file and no <path>.orig is left over
    transform  read all bytes, compute new bytes in memory
    swap       write new bytes to <path><suffix>
    commit     <path> -> <path>.orig, <path><suffix> -> <path>, delete <path>.orig

Until commit starts the original file is untouched. If commit is interrupted
between the renames, <path>.orig is left on disk for manual recovery; there is
no automatic rollback, and later calls on that path fail until the backup
is dealt with.
"""
import enum
import logging
import os

from pathlib import Path
from typing import Any, Callable, Optional

from sfe.crypto import cipher
from sfe.storage import envelope
from sfe.utils.dataModels import BACKUP_SUFFIX, DECODED_SUFFIX, ENCODED_SUFFIX
from sfe.utils.errors import CryptoFailure, FileEncryptionFailure, WrongPassword
from sfe.utils.metadata import decode_metadata, empty_value, serialize_metadata

logger = logging.getLogger(__name__)


class TxState(enum.Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    TRANSFORMED = "transformed"
    SWAPPED = "swapped"
    COMMITTED = "committed"
    FAILED = "failed"


def check_file_path(path: str) -> None:
    if not path:
        cause: Exception = ValueError("path is empty")
        raise FileEncryptionFailure("File Path is missing", cause, path) from cause
    if not os.path.isfile(path):
        cause = ValueError(f"not an existing file: {path}")
        raise FileEncryptionFailure(f"File does not exist: {path}", cause, path) from cause


def read_file(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise FileEncryptionFailure(f"Can not read file: {path}", exc, path) from exc


class FileTransaction:
    def __init__(self, path: str | os.PathLike, suffix: str) -> None:
        self.path = os.fspath(path) if path else ""
        self.temp_path = self.path + suffix
        self.backup_path = self.path + BACKUP_SUFFIX
        self.state = TxState.PENDING
        self.new_bytes: bytes | None = None
        self.result: Any = None

    def _expect(self, state: TxState) -> None:
        if self.state is not state:
            raise RuntimeError(f"transaction is {self.state.value}, expected {state.value}")

    def _advance(self, state: TxState) -> None:
        logger.debug("%s: %s -> %s", self.path, self.state.value, state.value)
        self.state = state

    def _discard_temp(self) -> None:
        try:
            os.remove(self.temp_path)
        except FileNotFoundError:
            pass

    def validate(self) -> None:
        self._expect(TxState.PENDING)
        try:
            check_file_path(self.path)
            # A leftover backup is the only copy from an interrupted rewrite.
            if os.path.exists(self.backup_path):
                cause = FileExistsError(f"backup already exists: {self.backup_path}")
                raise FileEncryptionFailure(
                    f"Backup from an interrupted operation exists: {self.backup_path}", cause, self.path
                ) from cause
        except FileEncryptionFailure:
            self._advance(TxState.FAILED)
            raise
        self._advance(TxState.VALIDATED)

    def transform(self, fn: Callable[[bytes], tuple[bytes, Any]]) -> None:
        """Run ``fn(old_bytes) -> (new_bytes, result)``; nothing on disk changes."""
        self._expect(TxState.VALIDATED)
        try:
            old = read_file(self.path)
            self.new_bytes, self.result = fn(old)
        except Exception:
            self._advance(TxState.FAILED)
            raise
        self._advance(TxState.TRANSFORMED)

    def swap(self) -> None:
        self._expect(TxState.TRANSFORMED)
        try:
            Path(self.temp_path).write_bytes(self.new_bytes)
        except OSError as exc:
            self._advance(TxState.FAILED)
            self._discard_temp()
            raise FileEncryptionFailure(
                f"Can not write temp file: {self.temp_path}", exc, self.path
            ) from exc
        self._advance(TxState.SWAPPED)

    def commit(self) -> None:
        self._expect(TxState.SWAPPED)
        try:
            os.rename(self.path, self.backup_path)
        except OSError as exc:
            self._advance(TxState.FAILED)
            self._discard_temp()
            raise FileEncryptionFailure(
                f"Can not move original aside: {self.path}", exc, self.path
            ) from exc
        try:
            os.rename(self.temp_path, self.path)
        except OSError as exc:
            self._advance(TxState.FAILED)
            logger.warning("interrupted rewrite of %s, original kept at %s", self.path, self.backup_path)
            raise FileEncryptionFailure(
                f"Can not replace file: {self.path}", exc, self.path
            ) from exc
        try:
            os.remove(self.backup_path)
        except OSError as exc:
            # New content is in place; only the stale backup remains.
            logger.warning("rewrote %s but could not remove backup %s: %s", self.path, self.backup_path, exc)
        self.new_bytes = None
        self._advance(TxState.COMMITTED)

    def run(self, fn: Callable[[bytes], tuple[bytes, Any]]) -> Any:
        self.validate()
        self.transform(fn)
        self.swap()
        self.commit()
        return self.result


def seal_envelope(metadata: Any, content: bytes, password: str, encrypt_metadata: bool = False) -> bytes:
    return envelope.build(serialize_metadata(metadata), encrypt_metadata, content, password)


def apply_encrypt(
    path: str | os.PathLike,
    metadata: Any,
    password: str,
    encrypt_metadata: bool = False,
) -> None:
    def _encrypt(old: bytes) -> tuple[bytes, None]:
        return seal_envelope(metadata, old, password, encrypt_metadata), None

    FileTransaction(path, ENCODED_SUFFIX).run(_encrypt)
    logger.info("encrypted %s in place", os.fspath(path))


def open_envelope(data: bytes, password: str, model: Optional[type] = None) -> tuple[bytes, Any]:
    """(content, metadata) for an envelope; non-envelope input passes through."""
    parsed = envelope.parse(data)
    if parsed is None:
        return data, empty_value(model)

    meta = decode_metadata(parsed.metadata, password, model)
    try:
        content = cipher.decrypt(parsed.payload, password)
    except CryptoFailure as exc:
        raise WrongPassword("Wrong password provided", password) from exc
    return content, meta


def apply_decrypt(path: str | os.PathLike, password: str, model: Optional[type] = None) -> Any:
    def _decrypt(old: bytes) -> tuple[bytes, Any]:
        return open_envelope(old, password, model)

    meta = FileTransaction(path, DECODED_SUFFIX).run(_decrypt)
    logger.info("decrypted %s in place", os.fspath(path))
    return meta
