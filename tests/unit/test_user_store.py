"""Unit tests for the file-backed UserStore."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from mo_approval.exceptions import DuplicateUserError, UserNotFoundError, UserStoreError
from mo_approval.models.user import UserRole
from mo_approval.services.user_store import UserStore


def _read(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# ensure_initialized
# ---------------------------------------------------------------------------


class TestEnsureInitialized:
    """Tests for first-run creation of the users file."""

    async def test_creates_parent_directory_and_default_admin(self, user_store, users_file, hasher):
        assert not users_file.parent.exists()

        created = await user_store.ensure_initialized()

        assert created is True
        document = _read(users_file)
        assert [u["userId"] for u in document["users"]] == ["admin"]
        admin = document["users"][0]
        assert admin["role"] == "admin"
        assert admin["plant"] == "ALL"
        assert admin["active"] is True
        assert admin["lastLogin"] is None
        assert admin["password"] != "admin123"
        assert hasher.verify_password("admin123", admin["password"])
        assert "lastUpdated" in document

    async def test_second_call_is_noop(self, user_store, users_file):
        await user_store.ensure_initialized()
        before = users_file.read_text()

        created = await user_store.ensure_initialized()

        assert created is False
        assert users_file.read_text() == before
        assert len(_read(users_file)["users"]) == 1

    async def test_existing_file_is_left_alone(self, users_file, hasher):
        users_file.parent.mkdir(parents=True)
        users_file.write_text(json.dumps({"users": [], "lastUpdated": None}))

        store = UserStore(users_file, hasher)
        assert await store.ensure_initialized() is False
        assert await store.list_all() == []

    async def test_concurrent_initialization_creates_one_admin(self, user_store, users_file):
        results = await asyncio.gather(*(user_store.ensure_initialized() for _ in range(5)))

        assert results.count(True) == 1
        assert len(_read(users_file)["users"]) == 1


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    """Tests for UserStore.create."""

    async def test_create_applies_defaults(self, initialized_store, hasher):
        user = await initialized_store.create(
            user_id="alice", password="pw1", name="Alice", email="alice@x.com"
        )

        assert user.role == UserRole.USER
        assert user.plant == "ALL"
        assert user.active is True
        assert user.last_login is None
        assert user.created_at.tzinfo is not None
        assert hasher.verify_password("pw1", user.password_hash)

    async def test_create_keeps_explicit_role_and_empty_plant(self, initialized_store):
        user = await initialized_store.create(
            user_id="appr",
            password="pw",
            name="Approver",
            email="a@x.com",
            role=UserRole.APPROVER,
            plant="",
        )
        assert user.role == UserRole.APPROVER
        assert user.plant == ""

    async def test_create_persists_in_insertion_order(self, initialized_store, users_file):
        for uid in ("c", "a", "b"):
            await initialized_store.create(user_id=uid, password="pw", name=uid, email=f"{uid}@x.com")

        assert [u["userId"] for u in _read(users_file)["users"]] == ["admin", "c", "a", "b"]
        assert [u.user_id for u in await initialized_store.list_all()] == ["admin", "c", "a", "b"]

    async def test_duplicate_user_id_rejected_without_mutation(self, initialized_store, users_file):
        before = users_file.read_text()

        with pytest.raises(DuplicateUserError):
            await initialized_store.create(
                user_id="admin", password="x", name="Imposter", email="i@x.com"
            )

        assert users_file.read_text() == before

    async def test_concurrent_creates_are_serialized(self, initialized_store):
        await asyncio.gather(
            *(
                initialized_store.create(
                    user_id=f"user{i}", password="pw", name=f"U{i}", email=f"u{i}@x.com"
                )
                for i in range(6)
            )
        )
        users = await initialized_store.list_all()
        assert len(users) == 7


# ---------------------------------------------------------------------------
# lookup, update, delete
# ---------------------------------------------------------------------------


class TestLookupAndMutation:
    """Tests for find, update, delete and touch_last_login."""

    async def test_find_by_user_id(self, initialized_store):
        assert (await initialized_store.find_by_user_id("admin")).name == "Administrator"
        assert await initialized_store.find_by_user_id("nobody") is None

    async def test_find_is_case_sensitive(self, initialized_store):
        assert await initialized_store.find_by_user_id("ADMIN") is None

    async def test_public_view_strips_hash(self, initialized_store):
        users = await initialized_store.list_all()
        public = users[0].public()
        dumped = public.model_dump(by_alias=True)
        assert "password" not in dumped
        assert "password_hash" not in dumped
        assert dumped["userId"] == "admin"

    async def test_update_merges_fields(self, initialized_store):
        updated = await initialized_store.update("admin", {"name": "Root", "plant": "1000"})

        assert updated.name == "Root"
        assert updated.plant == "1000"
        assert updated.email == "admin@ampl.in"
        assert (await initialized_store.find_by_user_id("admin")).name == "Root"

    async def test_update_hashes_password(self, initialized_store, hasher):
        updated = await initialized_store.update("admin", {"password": "new-secret"})

        assert updated.password_hash != "new-secret"
        assert hasher.verify_password("new-secret", updated.password_hash)

    async def test_update_cannot_change_user_id(self, initialized_store):
        updated = await initialized_store.update("admin", {"user_id": "root"})
        assert updated.user_id == "admin"

    async def test_update_unknown_user_raises(self, initialized_store):
        with pytest.raises(UserNotFoundError):
            await initialized_store.update("ghost", {"name": "Ghost"})

    async def test_update_stamps_last_updated(self, initialized_store, users_file):
        document = _read(users_file)
        document["lastUpdated"] = "2000-01-01T00:00:00Z"
        users_file.write_text(json.dumps(document))

        await initialized_store.update("admin", {"name": "X"})

        assert _read(users_file)["lastUpdated"] != "2000-01-01T00:00:00Z"

    async def test_delete(self, initialized_store):
        await initialized_store.create(user_id="bob", password="pw", name="Bob", email="b@x.com")

        await initialized_store.delete("bob")

        assert await initialized_store.find_by_user_id("bob") is None

    async def test_delete_unknown_user_raises(self, initialized_store):
        with pytest.raises(UserNotFoundError):
            await initialized_store.delete("ghost")

    async def test_touch_last_login(self, initialized_store, users_file):
        ts = datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)

        await initialized_store.touch_last_login("admin", ts)

        assert (await initialized_store.find_by_user_id("admin")).last_login == ts
        assert _read(users_file)["users"][0]["lastLogin"].startswith("2025-03-01T12:30:00")


# ---------------------------------------------------------------------------
# storage errors
# ---------------------------------------------------------------------------


class TestStorageErrors:
    """Tests for unreadable users files."""

    async def test_missing_file_raises_store_error(self, user_store):
        with pytest.raises(UserStoreError, match="Failed to read users file"):
            await user_store.list_all()

    async def test_corrupt_file_raises_store_error(self, users_file, hasher):
        users_file.parent.mkdir(parents=True)
        users_file.write_text("{not json")

        store = UserStore(users_file, hasher)
        with pytest.raises(UserStoreError, match="Failed to read users file"):
            await store.find_by_user_id("admin")

    @pytest.mark.parametrize(
        "document",
        [
            {"users": [{"userId": "x", "password": "h", "role": "superuser"}]},
            {"users": [{"userId": "x", "password": "h", "name": "X"}]},
            {"users": [42]},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_document_raises_store_error(self, users_file, hasher, document):
        users_file.parent.mkdir(parents=True)
        users_file.write_text(json.dumps(document))

        store = UserStore(users_file, hasher)
        with pytest.raises(UserStoreError, match="Failed to read users file"):
            await store.find_by_user_id("x")

    async def test_null_users_is_empty(self, users_file, hasher):
        users_file.parent.mkdir(parents=True)
        users_file.write_text(json.dumps({"users": None, "lastUpdated": None}))

        assert await UserStore(users_file, hasher).list_all() == []
