"""Tests for the profile repository."""

import asyncio
import json
from typing import List, get_type_hints

import pytest
import pytest_asyncio

from slipnet.errors import NotFoundError
from slipnet.models.profile import (
    DnsResolver,
    DnsTransport,
    ServerProfile,
    SshAuthType,
    TunnelType,
)
from slipnet.observable import Subscription
from slipnet.repositories.profile_repository import ProfileRepository
from slipnet.store import ConfigurationStore


@pytest_asyncio.fixture
async def store(tmp_path):
    """Open an empty store in a temporary directory."""
    return await ConfigurationStore.open(tmp_path / "store.json")


async def _ids(store):
    return [p.id for p in await store.profiles.list()]


class TestCreate:
    """Tests for creating profiles."""

    @pytest.mark.asyncio
    async def test_create_assigns_unique_ids(self, store):
        """Test ids are unique and the listed profile matches."""
        first = await store.profiles.create(ServerProfile(name="Home", dnstt_public_key="ab12"))
        second = await store.profiles.create(ServerProfile(name="Work", tunnel_type=TunnelType.SSH))

        assert first != second
        profiles = await store.profiles.list()
        matches = [p for p in profiles if p.id == first]
        assert len(matches) == 1
        assert matches[0].name == "Home"
        assert matches[0].dnstt_public_key == "ab12"

    @pytest.mark.asyncio
    async def test_create_sets_bookkeeping(self, store):
        """Test timestamps are set and new profiles start inactive."""
        profile_id = await store.profiles.create(
            ServerProfile(name="Home", is_active=True, last_connected_at=123)
        )
        profile = await store.profiles.require(profile_id)
        assert profile.is_active is False
        assert profile.last_connected_at == 0
        assert profile.created_at > 0
        assert profile.updated_at == profile.created_at

    @pytest.mark.asyncio
    async def test_create_appends_to_order(self, store):
        """Test new profiles sort after existing ones."""
        a = await store.profiles.create(ServerProfile(name="A"))
        b = await store.profiles.create(ServerProfile(name="B"))
        c = await store.profiles.create(ServerProfile(name="C"))
        assert await _ids(store) == [a, b, c]

    @pytest.mark.asyncio
    async def test_create_with_explicit_order(self, store):
        """Test an explicit sort_order is kept."""
        a = await store.profiles.create(ServerProfile(name="A"))
        b = await store.profiles.create(ServerProfile(name="B", sort_order=-1))
        assert await _ids(store) == [b, a]

    @pytest.mark.asyncio
    async def test_count_and_exists(self, store):
        """Test count and exists."""
        assert await store.profiles.count() == 0
        profile_id = await store.profiles.create(ServerProfile(name="A"))
        assert await store.profiles.count() == 1
        assert await store.profiles.exists(profile_id)
        assert not await store.profiles.exists(profile_id + 1)


class TestReadAndUpdate:
    """Tests for reading and editing profiles."""

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Test get returns None and require raises."""
        assert await store.profiles.get(42) is None
        with pytest.raises(NotFoundError) as exc_info:
            await store.profiles.require(42)
        assert exc_info.value.profile_id == 42

    @pytest.mark.asyncio
    async def test_returned_profiles_are_copies(self, store):
        """Test editing a returned profile does not change the store."""
        profile_id = await store.profiles.create(ServerProfile(name="Home"))
        profile = await store.profiles.require(profile_id)
        profile.name = "Changed"
        assert (await store.profiles.require(profile_id)).name == "Home"

    @pytest.mark.asyncio
    async def test_update_keeps_lifecycle_fields(self, store):
        """Test update refreshes updated_at and keeps lifecycle fields."""
        profile_id = await store.profiles.create(ServerProfile(name="Home"))
        await store.profiles.set_active(profile_id)
        await store.profiles.mark_connected(profile_id)
        stored = await store.profiles.require(profile_id)

        edited = stored.model_copy(update={
            "name": "Home 2",
            "is_active": False,
            "created_at": 1,
            "last_connected_at": 0,
        })
        result = await store.profiles.update(edited)

        assert result.name == "Home 2"
        assert result.is_active is True
        assert result.created_at == stored.created_at
        assert result.last_connected_at == stored.last_connected_at
        assert result.updated_at >= stored.updated_at

    @pytest.mark.asyncio
    async def test_update_unknown_id(self, store):
        """Test updating an unsaved profile raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.profiles.update(ServerProfile(id=99, name="Ghost"))


class TestActiveProfile:
    """Tests for the active profile marker."""

    @pytest.mark.asyncio
    async def test_set_active_is_exclusive(self, store):
        """Test only the last activated profile is active."""
        a = await store.profiles.create(ServerProfile(name="A"))
        b = await store.profiles.create(ServerProfile(name="B"))

        await store.profiles.set_active(a)
        await store.profiles.set_active(b)

        active = [p.id for p in await store.profiles.list() if p.is_active]
        assert active == [b]
        assert (await store.preferences.snapshot()).active_profile_id == b
        assert (await store.profiles.get_active()).id == b

    @pytest.mark.asyncio
    async def test_set_active_unknown(self, store):
        """Test activating a missing profile changes nothing."""
        a = await store.profiles.create(ServerProfile(name="A"))
        await store.profiles.set_active(a)

        with pytest.raises(NotFoundError):
            await store.profiles.set_active(99)
        assert (await store.preferences.snapshot()).active_profile_id == a

    @pytest.mark.asyncio
    async def test_delete_active_clears_pointers(self, store):
        """Test deleting the active profile clears both pointers."""
        a = await store.profiles.create(ServerProfile(name="A"))
        await store.profiles.set_active(a)
        await store.profiles.mark_connected(a)

        assert await store.profiles.delete(a) is True
        prefs = await store.preferences.snapshot()
        assert prefs.active_profile_id is None
        assert prefs.last_connected_profile_id is None

    @pytest.mark.asyncio
    async def test_delete_other_keeps_pointer(self, store):
        """Test deleting another profile keeps the active pointer."""
        a = await store.profiles.create(ServerProfile(name="A"))
        b = await store.profiles.create(ServerProfile(name="B"))
        await store.profiles.set_active(a)

        await store.profiles.delete(b)
        assert (await store.preferences.snapshot()).active_profile_id == a

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        """Test deleting an unknown id returns False."""
        assert await store.profiles.delete(5) is False

    @pytest.mark.asyncio
    async def test_mark_connected(self, store):
        """Test connection bookkeeping."""
        a = await store.profiles.create(ServerProfile(name="A"))
        await store.profiles.mark_connected(a)

        profile = await store.profiles.require(a)
        assert profile.last_connected_at > 0
        assert (await store.preferences.snapshot()).last_connected_profile_id == a


class TestReorder:
    """Tests for reordering."""

    @pytest.mark.asyncio
    async def test_reorder_all(self, store):
        """Test a full permutation is applied."""
        for name in ("one", "two", "three"):
            await store.profiles.create(ServerProfile(name=name))

        await store.profiles.reorder([3, 1, 2])
        assert await _ids(store) == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_reorder_partial(self, store):
        """Test unlisted profiles keep their relative order afterwards."""
        for name in ("one", "two", "three", "four"):
            await store.profiles.create(ServerProfile(name=name))

        await store.profiles.reorder([4, 2])
        assert await _ids(store) == [4, 2, 1, 3]

    @pytest.mark.asyncio
    async def test_reorder_unknown_id(self, store):
        """Test unknown ids are rejected without changing the order."""
        await store.profiles.create(ServerProfile(name="one"))
        await store.profiles.create(ServerProfile(name="two"))

        with pytest.raises(NotFoundError):
            await store.profiles.reorder([2, 9])
        assert await _ids(store) == [1, 2]


class TestObserve:
    """Tests for the live profile list."""

    @pytest.mark.asyncio
    async def test_observe_emits_changes(self, store):
        """Test subscribers see the list after each change."""
        subscription = store.profiles.observe()
        assert await asyncio.wait_for(subscription.__anext__(), 1) == []

        profile_id = await store.profiles.create(ServerProfile(name="Home"))
        latest = await asyncio.wait_for(subscription.__anext__(), 1)
        assert [p.id for p in latest] == [profile_id]
        subscription.cancel()


class TestPersistence:
    """Tests for persistence across reopen."""

    @pytest.mark.asyncio
    async def test_reload_is_field_for_field_equal(self, tmp_path):
        """Test a reopened store returns identical profiles."""
        path = tmp_path / "store.json"
        store = await ConfigurationStore.open(path)
        profile_id = await store.profiles.create(ServerProfile(
            name="Office",
            tunnel_type=TunnelType.DNSTT_SSH,
            domain="t.example.com",
            resolvers=[DnsResolver(host="1.1.1.1"), DnsResolver(host="9.9.9.9", port=5353, authoritative=True)],
            dnstt_public_key="ab12cd",
            dns_transport=DnsTransport.DOT,
            ssh_auth_type=SshAuthType.KEY,
            ssh_private_key="-----BEGIN KEY-----\nabc\n-----END KEY-----",
            socks_username="me",
        ))
        await store.profiles.set_active(profile_id)
        original = await store.profiles.require(profile_id)

        reopened = await ConfigurationStore.open(path)
        assert await reopened.profiles.require(profile_id) == original

        document = json.loads(path.read_text())
        record = document["profiles"][0]
        assert record["tunnel_type"] == "dnstt_ssh"
        assert record["dns_transport"] == "dot"
        assert record["ssh_auth_type"] == "key"
        assert document["preferences"]["active_profile_id"] == profile_id

    @pytest.mark.asyncio
    async def test_ids_not_reused_after_delete(self, tmp_path):
        """Test ids keep increasing across deletes and reopen."""
        path = tmp_path / "store.json"
        store = await ConfigurationStore.open(path)
        first = await store.profiles.create(ServerProfile(name="A"))
        await store.profiles.delete(first)

        reopened = await ConfigurationStore.open(path)
        assert await reopened.profiles.create(ServerProfile(name="B")) == first + 1


class TestSignatures:
    """Tests for the repository's public signatures."""

    def test_annotations_resolve(self):
        """Test annotations after the list() method still name the builtin list type."""
        assert get_type_hints(ProfileRepository.reorder)["ids"] == List[int]
        assert get_type_hints(ProfileRepository.list)["return"] == List[ServerProfile]
        assert get_type_hints(ProfileRepository.observe)["return"] == Subscription[List[ServerProfile]]
