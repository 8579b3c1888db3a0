import os
import random

import pytest

from sfe.utils.dataModels import CryptoMetadata


@pytest.fixture
def content() -> bytes:
    return os.urandom(1024)


@pytest.fixture
def meta() -> CryptoMetadata:
    return CryptoMetadata.create("sample")


@pytest.fixture
def seeded():
    """Deterministic random source factory: seeded(42) -> callable(n) -> bytes."""
    def make(seed: int):
        return random.Random(seed).randbytes
    return make


@pytest.fixture
def sample_file(tmp_path, content):
    path = tmp_path / "file.dat"
    path.write_bytes(content)
    return path


@pytest.fixture
def leftovers():
    """leftovers(path) -> the temp/backup sibling suffixes still on disk."""
    def check(path) -> list[str]:
        return [s for s in (".orig", ".encoded", ".decoded") if os.path.exists(str(path) + s)]
    return check
