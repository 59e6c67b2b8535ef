"""
Tests for the persisted pin record.
"""

import json
from unittest.mock import Mock

import pytest

from branchpin.models import GitRepositoryError, PinnedRevision, PinRecord
from branchpin.pin_store import PinStore


class TestPinStore:
    """Test loading and replacing pin records."""

    def setup_method(self):
        self.gm = Mock()

    def _store(self, tmp_path):
        self.gm.git_dir = tmp_path
        return PinStore(self.gm)

    def _record(self, **pins):
        record = PinRecord(owner="acme", branch="2.1/feature", fallback="trunk")
        for name, ref in pins.items():
            record.pins[name] = PinnedRevision(name, ref, f"{name}-sha")
        return record

    def test_load_without_record(self, tmp_path):
        assert self._store(tmp_path).load() is None

    def test_replace_then_load(self, tmp_path):
        store = self._store(tmp_path)
        record = self._record(lib="acme/2.1/feature", tools="trunk/2.1/master")

        store.replace(record)

        assert store.path == tmp_path / "branchpin" / "pins.json"
        assert store.load() == record
        assert not store.path.with_suffix(".tmp").exists()

    def test_replace_drops_previous_pins(self, tmp_path):
        store = self._store(tmp_path)
        store.replace(self._record(lib="acme/2.1/feature", old="trunk/2.1/master"))

        store.replace(self._record(lib="trunk/2.1/master"))

        loaded = store.load()
        assert set(loaded.pins) == {"lib"}
        assert loaded.pins["lib"].ref == "trunk/2.1/master"

    def test_file_is_plain_json(self, tmp_path):
        store = self._store(tmp_path)
        store.replace(self._record(lib="acme/2.1/feature"))

        data = json.loads(store.path.read_text())
        assert data["pins"]["lib"] == {"ref": "acme/2.1/feature", "commit": "lib-sha"}

    def test_unreadable_record(self, tmp_path):
        store = self._store(tmp_path)
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        with pytest.raises(GitRepositoryError):
            store.load()

    def test_clear(self, tmp_path):
        store = self._store(tmp_path)
        assert store.clear() is False

        store.replace(self._record(lib="acme/2.1/feature"))
        assert store.clear() is True
        assert store.load() is None
