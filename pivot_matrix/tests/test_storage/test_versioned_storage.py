"""Tests for Storage: rotation, atomic replace, corrupt-version fallback, formats."""

import math
import pickle

import pytest

from pivot_matrix.core.errors import ConfigError, StorageError
from pivot_matrix.core.types import StorageFormat
from pivot_matrix.storage.versioned_storage import Storage, StorageFactory


SNAPSHOT = {"strategy": "powern", "state": {"val": -4.5, "k": 100.0, "p": 5.0, "pos": 1.0}}


class _BrokenOnLoad:
    """Pickles fine, fails inside pickle.loads with the given call."""

    def __init__(self, func, args):
        self._reduce = (func, args)

    def __reduce__(self):
        return self._reduce


class TestStorage:
    def test_missing_returns_none(self, tmp_path):
        assert Storage(tmp_path / "state").load() is None

    def test_store_and_load(self, tmp_path):
        s = Storage(tmp_path / "state")
        s.store(SNAPSHOT)
        assert s.load() == SNAPSHOT

    def test_no_tmp_left_behind(self, tmp_path):
        s = Storage(tmp_path / "state")
        s.store(SNAPSHOT)
        assert not (tmp_path / "state.tmp").exists()

    def test_creates_parent_directory(self, tmp_path):
        s = Storage(tmp_path / "nested" / "dir" / "state")
        s.store(SNAPSHOT)
        assert s.load() == SNAPSHOT

    def test_rotation_keeps_n_versions(self, tmp_path):
        s = Storage(tmp_path / "state", versions=3)
        for i in range(5):
            s.store({"n": i})
        assert s.load() == {"n": 4}
        assert (tmp_path / "state.1").exists()
        assert (tmp_path / "state.2").exists()
        assert not (tmp_path / "state.3").exists()
        assert s.version_path(2).read_text() == '{"n":2}'

    def test_single_version(self, tmp_path):
        s = Storage(tmp_path / "state", versions=1)
        s.store({"n": 1})
        s.store({"n": 2})
        assert s.load() == {"n": 2}
        assert not (tmp_path / "state.1").exists()

    def test_corrupt_newest_falls_back(self, tmp_path):
        s = Storage(tmp_path / "state")
        s.store({"n": 1})
        s.store({"n": 2})
        s.file.write_bytes(b'{"n": 2, trunc')
        assert s.load() == {"n": 1}

    def test_all_corrupt_returns_none(self, tmp_path):
        s = Storage(tmp_path / "state", versions=2)
        s.store({"n": 1})
        s.store({"n": 2})
        s.version_path(0).write_bytes(b"\x80garbage")
        s.version_path(1).write_bytes(b"")
        assert s.load() is None

    @pytest.mark.parametrize("fmt", list(StorageFormat))
    def test_formats(self, tmp_path, fmt):
        s = Storage(tmp_path / "state", fmt=fmt)
        s.store(SNAPSHOT)
        assert s.load() == SNAPSHOT
        assert s.format == fmt

    def test_pretty_is_indented(self, tmp_path):
        s = Storage(tmp_path / "state", fmt=StorageFormat.JSON_PRETTY)
        s.store(SNAPSHOT)
        assert '\n  "state"' in s.file.read_text()

    def test_binary_is_pickle(self, tmp_path):
        s = Storage(tmp_path / "state", fmt=StorageFormat.BINARY)
        s.store(SNAPSHOT)
        assert s.file.read_bytes()[:1] == b"\x80"

    @pytest.mark.parametrize(
        "func, args",
        [
            (math.exp, (1000.0,)),        # OverflowError
            (int, (None,)),               # TypeError
            (getattr, (object, "nope")),  # AttributeError
        ],
    )
    def test_binary_decode_failure_falls_back(self, tmp_path, func, args):
        s = Storage(tmp_path / "state", fmt=StorageFormat.BINARY)
        s.store({"n": 1})
        s.store({"n": 2})
        s.file.write_bytes(pickle.dumps(_BrokenOnLoad(func, args), protocol=pickle.HIGHEST_PROTOCOL))
        assert s.load() == {"n": 1}

    def test_format_change_keeps_old_versions_readable(self, tmp_path):
        Storage(tmp_path / "state", fmt=StorageFormat.JSON).store({"n": 1})
        binary = Storage(tmp_path / "state", fmt=StorageFormat.BINARY)
        assert binary.load() == {"n": 1}
        binary.store({"n": 2})
        binary.file.write_bytes(b"\x80\x05")
        assert binary.load() == {"n": 1}

    def test_versions_must_be_positive(self, tmp_path):
        with pytest.raises(ConfigError):
            Storage(tmp_path / "state", versions=0)

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            Storage(blocker / "state").store(SNAPSHOT)


class TestStorageFactory:
    def test_create(self, tmp_path):
        factory = StorageFactory(tmp_path, versions=2, fmt=StorageFormat.JSON_PRETTY)
        s = factory.create("powern_BTCUSD")
        assert s.file == tmp_path / "powern_BTCUSD"
        assert s.versions == 2
        assert s.format == StorageFormat.JSON_PRETTY
        assert factory.path == tmp_path

    def test_names_are_independent(self, tmp_path):
        factory = StorageFactory(tmp_path)
        factory.create("a").store({"name": "a"})
        factory.create("b").store({"name": "b"})
        assert factory.create("a").load() == {"name": "a"}
        assert factory.create("b").load() == {"name": "b"}
