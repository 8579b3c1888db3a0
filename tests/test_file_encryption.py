import os

import pytest

from sfe.storage import transaction
from sfe.storage.transaction import FileTransaction, TxState
from sfe.utils.core import decrypt_file, encrypt_file, get_metadata, is_encrypted
from sfe.utils.dataModels import CryptoMetadata
from sfe.utils.errors import FileEncryptionFailure, PasswordRequired, WrongPassword

PASSWORD = "password123"


# -------------------------------------------------------------- happy path

def test_encrypt_and_decrypt_with_meta(sample_file, content, meta, leftovers):
    encrypt_file(meta, sample_file, PASSWORD)
    assert sample_file.read_bytes() != content
    assert is_encrypted(sample_file)
    assert leftovers(sample_file) == []

    got = decrypt_file(sample_file, PASSWORD, CryptoMetadata)
    assert sample_file.read_bytes() == content
    assert got.original_filename == meta.original_filename
    assert leftovers(sample_file) == []


def test_encrypt_and_decrypt_without_meta(sample_file, content, leftovers):
    encrypt_file(None, str(sample_file), PASSWORD)
    assert sample_file.read_bytes() != content
    assert decrypt_file(str(sample_file), PASSWORD) is None
    assert sample_file.read_bytes() == content
    assert leftovers(sample_file) == []


def test_no_meta_decrypt_with_model_gives_empty(sample_file):
    encrypt_file(None, sample_file, PASSWORD)
    assert decrypt_file(sample_file, PASSWORD, CryptoMetadata) == CryptoMetadata()


def test_decrypt_plain_file_leaves_content(sample_file, content, leftovers):
    assert decrypt_file(sample_file, PASSWORD) is None
    assert sample_file.read_bytes() == content
    assert leftovers(sample_file) == []


def test_read_public_meta_without_password(sample_file, meta):
    encrypt_file(meta, sample_file, PASSWORD)
    assert get_metadata(sample_file, model=CryptoMetadata) == meta
    assert get_metadata(str(sample_file), model=CryptoMetadata) == meta


def test_read_protected_meta(sample_file, meta):
    encrypt_file(meta, sample_file, PASSWORD, encrypt_metadata=True)
    with pytest.raises(PasswordRequired):
        get_metadata(sample_file, model=CryptoMetadata)
    assert get_metadata(sample_file, PASSWORD, CryptoMetadata) == meta


def test_is_encrypted_for_files(sample_file, tmp_path):
    assert not is_encrypted(sample_file)
    encrypt_file(None, sample_file, PASSWORD)
    assert is_encrypted(sample_file)
    empty = tmp_path / "empty"
    empty.write_bytes(b"")
    assert not is_encrypted(empty)


# ---------------------------------------------------------- failure cases

@pytest.mark.parametrize("op", ["encrypt", "decrypt", "meta", "check"])
def test_missing_file(tmp_path, op):
    missing = tmp_path / "file.dat"
    with pytest.raises(FileEncryptionFailure) as info:
        if op == "encrypt":
            encrypt_file(None, missing, PASSWORD)
        elif op == "decrypt":
            decrypt_file(missing, PASSWORD)
        elif op == "meta":
            get_metadata(missing)
        else:
            is_encrypted(missing)
    assert isinstance(info.value.cause, ValueError)
    assert info.value.__cause__ is info.value.cause
    assert not missing.exists()
    assert os.listdir(tmp_path) == []


def test_empty_path():
    with pytest.raises(FileEncryptionFailure) as info:
        encrypt_file(None, "", PASSWORD)
    assert isinstance(info.value.cause, ValueError)


def test_directory_is_not_a_file(tmp_path):
    with pytest.raises(FileEncryptionFailure):
        encrypt_file(None, tmp_path, PASSWORD)


def test_wrong_password_leaves_file_untouched(sample_file, meta, leftovers):
    encrypt_file(meta, sample_file, PASSWORD, encrypt_metadata=True)
    before = sample_file.read_bytes()
    with pytest.raises(WrongPassword):
        decrypt_file(sample_file, "wrong")
    assert sample_file.read_bytes() == before
    assert leftovers(sample_file) == []


def test_temp_write_failure_keeps_original(sample_file, content, leftovers, monkeypatch):
    real_write = transaction.Path.write_bytes

    def deny(self, data):
        if str(self).endswith(".encoded"):
            raise PermissionError(13, "Permission denied", str(self))
        return real_write(self, data)

    monkeypatch.setattr(transaction.Path, "write_bytes", deny)
    with pytest.raises(FileEncryptionFailure) as info:
        encrypt_file(None, sample_file, PASSWORD)
    assert isinstance(info.value.cause, PermissionError)
    assert sample_file.read_bytes() == content
    assert leftovers(sample_file) == []


def test_read_failure_is_wrapped(sample_file, monkeypatch):
    def deny(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(transaction.Path, "read_bytes", deny)
    with pytest.raises(FileEncryptionFailure) as info:
        decrypt_file(sample_file, PASSWORD)
    assert isinstance(info.value.cause, PermissionError)


def test_interrupted_commit_leaves_backup(sample_file, content, monkeypatch):
    real_rename = os.rename

    def flaky(src, dst):
        if str(src).endswith(".encoded"):
            raise OSError("disk gone")
        return real_rename(src, dst)

    monkeypatch.setattr(transaction.os, "rename", flaky)
    with pytest.raises(FileEncryptionFailure):
        encrypt_file(None, sample_file, PASSWORD)
    backup = str(sample_file) + ".orig"
    assert os.path.exists(backup)
    with open(backup, "rb") as f:
        assert f.read() == content


@pytest.mark.parametrize("op", ["encrypt", "decrypt"])
def test_leftover_backup_is_never_overwritten(sample_file, content, op):
    backup = sample_file.parent / (sample_file.name + ".orig")
    backup.write_bytes(b"recovery copy from an earlier crash")

    with pytest.raises(FileEncryptionFailure) as info:
        if op == "encrypt":
            encrypt_file(None, sample_file, PASSWORD)
        else:
            decrypt_file(sample_file, PASSWORD)

    assert isinstance(info.value.cause, FileExistsError)
    assert backup.read_bytes() == b"recovery copy from an earlier crash"
    assert sample_file.read_bytes() == content
    assert not os.path.exists(str(sample_file) + ".encoded")
    assert not os.path.exists(str(sample_file) + ".decoded")


def test_leftover_backup_fails_validation(sample_file):
    (sample_file.parent / (sample_file.name + ".orig")).write_bytes(b"old")
    tx = FileTransaction(sample_file, ".encoded")
    with pytest.raises(FileEncryptionFailure):
        tx.validate()
    assert tx.state is TxState.FAILED


def test_backup_delete_failure_still_commits(sample_file, content, leftovers, monkeypatch, caplog):
    def deny(path):
        raise PermissionError("locked")

    monkeypatch.setattr(transaction.os, "remove", deny)
    tx = FileTransaction(sample_file, ".encoded")
    tx.run(_reverse)

    assert tx.state is TxState.COMMITTED
    assert sample_file.read_bytes() == content[::-1]
    assert leftovers(sample_file) == [".orig"]
    assert "could not remove backup" in caplog.text


# ----------------------------------------------------------- state machine

def _reverse(old):
    return old[::-1], "done"


def test_transaction_states(sample_file, content, leftovers):
    tx = FileTransaction(sample_file, ".encoded")
    assert tx.state is TxState.PENDING

    tx.validate()
    assert tx.state is TxState.VALIDATED

    tx.transform(_reverse)
    assert tx.state is TxState.TRANSFORMED
    assert sample_file.read_bytes() == content
    assert leftovers(sample_file) == []

    tx.swap()
    assert tx.state is TxState.SWAPPED
    assert sample_file.read_bytes() == content
    assert leftovers(sample_file) == [".encoded"]

    tx.commit()
    assert tx.state is TxState.COMMITTED
    assert sample_file.read_bytes() == content[::-1]
    assert leftovers(sample_file) == []
    assert tx.result == "done"


def test_transaction_steps_must_run_in_order(sample_file):
    tx = FileTransaction(sample_file, ".decoded")
    with pytest.raises(RuntimeError):
        tx.swap()
    tx.validate()
    with pytest.raises(RuntimeError):
        tx.commit()


def test_failed_transform_marks_failed(sample_file, content):
    def boom(old):
        raise WrongPassword("nope", "pw")

    tx = FileTransaction(sample_file, ".decoded")
    tx.validate()
    with pytest.raises(WrongPassword):
        tx.transform(boom)
    assert tx.state is TxState.FAILED
    assert sample_file.read_bytes() == content


def test_failed_validation_marks_failed(tmp_path):
    tx = FileTransaction(tmp_path / "nope", ".encoded")
    with pytest.raises(FileEncryptionFailure):
        tx.validate()
    assert tx.state is TxState.FAILED
