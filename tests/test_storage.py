"""Tests for durable storage and the transactional state store."""

import asyncio
import json
import os
import threading

import pytest

from slipnet.errors import StorageError
from slipnet.models.profile import ServerProfile, TunnelType
from slipnet.repositories.state import StateStore, StoreState
from slipnet.repositories.storage import JsonFileStorage
from slipnet.store import ConfigurationStore


@pytest.fixture
def fast_kdf(monkeypatch):
    """Use a cheap key derivation so encryption tests stay fast."""
    monkeypatch.setattr(JsonFileStorage, "PBKDF2_ITERATIONS", 1000)


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_read_missing_file(self, tmp_path):
        """Test a store that was never written reads as None."""
        storage = JsonFileStorage(tmp_path / "store.json")
        assert storage.read() is None

    def test_write_then_read(self, tmp_path):
        """Test the document is written as JSON."""
        path = tmp_path / "nested" / "store.json"
        storage = JsonFileStorage(path)
        storage.write({"version": 1, "profiles": []})

        assert json.loads(path.read_text()) == {"version": 1, "profiles": []}
        assert storage.read() == {"version": 1, "profiles": []}

    def test_no_temp_files_left(self, tmp_path):
        """Test the atomic replace cleans up after itself."""
        storage = JsonFileStorage(tmp_path / "store.json")
        storage.write({"a": 1})
        storage.write({"a": 2})
        assert sorted(os.listdir(tmp_path)) == ["store.json"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_permissions(self, tmp_path):
        """Test the store is only readable by its owner."""
        path = tmp_path / "store.json"
        JsonFileStorage(path).write({})
        assert path.stat().st_mode & 0o777 == 0o600

    def test_corrupted_json(self, tmp_path):
        """Test unparsable content raises StorageError."""
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StorageError, match="Corrupted"):
            JsonFileStorage(path).read()

    def test_non_object_document(self, tmp_path):
        """Test a JSON array is rejected."""
        path = tmp_path / "store.json"
        path.write_text("[]")
        with pytest.raises(StorageError):
            JsonFileStorage(path).read()

    def test_encrypted_round_trip(self, tmp_path, fast_kdf):
        """Test encryption at rest with a master key."""
        path = tmp_path / "store.json"
        storage = JsonFileStorage(path, master_key="correct horse")
        storage.write({"name": "Home"})

        assert storage.encrypted
        assert b"Home" not in path.read_bytes()
        assert (tmp_path / ".salt").exists()
        assert JsonFileStorage(path, master_key="correct horse").read() == {"name": "Home"}

    def test_wrong_master_key(self, tmp_path, fast_kdf):
        """Test a wrong key raises StorageError instead of returning garbage."""
        path = tmp_path / "store.json"
        JsonFileStorage(path, master_key="correct horse").write({"name": "Home"})

        with pytest.raises(StorageError, match="decrypt"):
            JsonFileStorage(path, master_key="battery staple").read()


class TestStoreState:
    """Tests for the document mapping of StoreState."""

    def test_document_round_trip(self):
        """Test state survives conversion to a document."""
        state = StoreState(
            next_profile_id=3,
            profiles=[ServerProfile(id=2, name="Work", tunnel_type=TunnelType.SSH)],
        )
        document = state.to_document()
        assert document["profiles"][0]["tunnel_type"] == "ssh"
        assert StoreState.from_document(document) == state

    def test_next_id_never_reuses_ids(self):
        """Test a stale counter is moved past stored ids."""
        state = StoreState.from_document({
            "next_profile_id": 1,
            "profiles": [{"id": 7, "name": "Seven"}],
        })
        assert state.next_profile_id == 8


class TestStateStore:
    """Tests for StateStore transactions."""

    @pytest.mark.asyncio
    async def test_mutation_is_persisted(self, tmp_path):
        """Test a committed mutation reaches disk."""
        store = StateStore(JsonFileStorage(tmp_path / "store.json"))
        await store.load()

        def _set_timeout(state):
            state.preferences.dns_timeout_ms = 7000
            return "done"

        assert await store.mutate(_set_timeout) == "done"
        assert store.state.preferences.dns_timeout_ms == 7000

        reloaded = StateStore(JsonFileStorage(tmp_path / "store.json"))
        await reloaded.load()
        assert reloaded.state.preferences.dns_timeout_ms == 7000

    @pytest.mark.asyncio
    async def test_failed_mutation_leaves_state(self, tmp_path):
        """Test an exception in the mutation discards the draft."""
        store = StateStore(JsonFileStorage(tmp_path / "store.json"))
        await store.load()

        def _fail(state):
            state.preferences.dns_timeout_ms = 7000
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await store.mutate(_fail)
        assert store.state.preferences.dns_timeout_ms == 5000

    @pytest.mark.asyncio
    async def test_failed_write_leaves_state(self, tmp_path, monkeypatch):
        """Test a storage failure commits nothing and notifies nobody."""
        store = StateStore(JsonFileStorage(tmp_path / "store.json"))
        await store.load()
        notified = []
        store.add_listener(notified.append)

        def _broken_write(data):
            raise StorageError("disk full")

        monkeypatch.setattr(store.storage, "write", _broken_write)

        def _set(state):
            state.preferences.kill_switch = True

        with pytest.raises(StorageError):
            await store.mutate(_set)
        assert store.state.preferences.kill_switch is False
        assert notified == []

    @pytest.mark.asyncio
    async def test_noop_mutation_skips_write(self, tmp_path):
        """Test an unchanged draft is not written."""
        path = tmp_path / "store.json"
        store = StateStore(JsonFileStorage(path))
        await store.load()

        await store.mutate(lambda state: None)
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_commits(self, tmp_path):
        """Test cancelling the caller does not abort a submitted write."""
        store = StateStore(JsonFileStorage(tmp_path / "store.json"))
        await store.load()

        def _add(amount):
            def _apply(state):
                state.preferences.total_bytes_sent += amount
            return _apply

        caller = asyncio.create_task(store.mutate(_add(10)))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        # Queued behind the cancelled caller's transaction
        await store.mutate(_add(1))
        assert store.state.preferences.total_bytes_sent == 11

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [
        {"profiles": [{"id": 1, "socks_listen_port": "abc"}]},
        {"profiles": [{"id": 1, "resolvers": "x"}]},
        {"next_profile_id": "many"},
        {"version": "one"},
        {"preferences": ["not", "a", "record"]},
    ])
    async def test_malformed_record_raises_storage_error(self, tmp_path, document):
        """Test readable JSON with bad records fails as StorageError."""
        path = tmp_path / "store.json"
        path.write_text(json.dumps(document))
        store = StateStore(JsonFileStorage(path))

        with pytest.raises(StorageError, match="Corrupted store file"):
            await store.load()
        assert store.state == StoreState()


class TestConfigurationStoreOpen:
    """Tests for opening a store."""

    @pytest.mark.asyncio
    async def test_key_derivation_off_the_event_loop(self, tmp_path, fast_kdf, monkeypatch):
        """Test the salt file and key derivation are handled in a worker thread."""
        threads = []
        derive = JsonFileStorage._derive_fernet_key

        def _recording_derive(self, master_key):
            threads.append(threading.current_thread())
            return derive(self, master_key)

        monkeypatch.setattr(JsonFileStorage, "_derive_fernet_key", _recording_derive)
        store = await ConfigurationStore.open(tmp_path / "store.json", master_key="secret")

        assert store.state.storage.encrypted
        assert threads and threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_malformed_document(self, tmp_path):
        """Test open reports a bad record as StorageError."""
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"profiles": [{"id": 1, "socks_listen_port": "abc"}]}))

        with pytest.raises(StorageError):
            await ConfigurationStore.open(path)
