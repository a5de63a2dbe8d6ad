"""Unit tests for the user service."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from tests.factories import UserFactory, count_users, fetch_user
from users_api.models import Gender
from users_api.schemas import RegisterRequest
from users_api.security import verify_password
from users_api.services import (
    EmailAlreadyRegisteredError,
    NoFieldsToUpdateError,
    UserNotFoundError,
    user_service,
)


def _register_request(**overrides) -> RegisterRequest:
    data = {
        "email": "new@example.com",
        "password": "secret1",
        "first_name": "New",
        "last_name": "Person",
    }
    data.update(overrides)
    return RegisterRequest(**data)


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_create_user_hashes_password(self, db):
        user = await user_service.create_user(db, _register_request())

        assert user.id is not None
        assert user.email == "new@example.com"
        assert user.password_hash != "secret1"
        assert verify_password("secret1", user.password_hash)
        assert user.created_at is not None
        assert user.updated_at is not None

    @pytest.mark.asyncio
    async def test_create_user_stores_profile_fields(self, db):
        user = await user_service.create_user(
            db,
            _register_request(country="DE", gender="male", birthday="1970-01-01"),
        )

        assert user.country == "DE"
        assert user.gender == Gender.MALE
        assert str(user.birthday) == "1970-01-01"
        assert user.address is None

    @pytest.mark.asyncio
    async def test_create_user_blank_optional_text_is_null(self, db):
        user = await user_service.create_user(db, _register_request(address="   ", country=""))

        assert user.address is None
        assert user.country is None

    @pytest.mark.asyncio
    async def test_create_user_duplicate_email(self, db, session_maker):
        await UserFactory.create_async(db, email="new@example.com")

        with pytest.raises(EmailAlreadyRegisteredError):
            await user_service.create_user(db, _register_request(email="NEW@example.com"))

        assert await count_users(session_maker, "new@example.com") == 1

    @pytest.mark.asyncio
    async def test_create_user_unique_violation_at_commit(self, db, session_maker, monkeypatch):
        """A concurrent insert that slips past the pre-check still surfaces as a conflict."""
        await UserFactory.create_async(db, email="race@example.com")
        monkeypatch.setattr(user_service, "email_in_use", AsyncMock(return_value=False))

        with pytest.raises(EmailAlreadyRegisteredError) as exc_info:
            await user_service.create_user(db, _register_request(email="race@example.com"))

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert await count_users(session_maker, "race@example.com") == 1


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_user_by_email_normalizes(self, db, test_user):
        found = await user_service.get_user_by_email(db, "  OWNER@example.com ")

        assert found is not None
        assert found.id == test_user.id

    @pytest.mark.asyncio
    async def test_get_user_by_email_missing(self, db):
        assert await user_service.get_user_by_email(db, "nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_get_user_by_id_missing(self, db):
        assert await user_service.get_user_by_id(db, 424242) is None

    @pytest.mark.asyncio
    async def test_email_in_use_excludes_self(self, db, test_user):
        assert await user_service.email_in_use(db, test_user.email) is True
        assert await user_service.email_in_use(db, test_user.email, exclude_user_id=test_user.id) is False

    @pytest.mark.asyncio
    async def test_list_users_empty(self, db):
        assert await user_service.list_users(db) == []


class TestUpdateUser:
    @pytest.mark.asyncio
    async def test_update_missing_user(self, db):
        with pytest.raises(UserNotFoundError) as exc_info:
            await user_service.update_user(db, 999, {"first_name": "X"})

        assert exc_info.value.user_id == 999

    @pytest.mark.asyncio
    async def test_update_missing_user_checked_before_empty_changes(self, db):
        with pytest.raises(UserNotFoundError):
            await user_service.update_user(db, 999, {})

    @pytest.mark.asyncio
    async def test_update_no_fields(self, db, test_user):
        with pytest.raises(NoFieldsToUpdateError):
            await user_service.update_user(db, test_user.id, {})

    @pytest.mark.asyncio
    async def test_update_hashes_password(self, db, test_user, session_maker):
        await user_service.update_user(db, test_user.id, {"password": "another1"})

        stored = await fetch_user(session_maker, test_user.id)
        assert verify_password("another1", stored.password_hash)
        assert not hasattr(stored, "password")

    @pytest.mark.asyncio
    async def test_update_email_taken(self, db, test_user):
        await UserFactory.create_async(db, email="other@example.com")

        with pytest.raises(EmailAlreadyRegisteredError):
            await user_service.update_user(db, test_user.id, {"email": "other@example.com"})

    @pytest.mark.asyncio
    async def test_update_refreshes_updated_at(self, db, test_user):
        before = test_user.updated_at

        user = await user_service.update_user(db, test_user.id, {"last_name": "Renamed"})

        assert user.last_name == "Renamed"
        assert user.updated_at >= before
        assert user.first_name == "Olive"


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_delete_returns_removed_user(self, db, test_user, session_maker):
        deleted = await user_service.delete_user(db, test_user.id)

        assert deleted.id == test_user.id
        assert deleted.email == test_user.email
        assert await fetch_user(session_maker, test_user.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_user(self, db):
        with pytest.raises(UserNotFoundError):
            await user_service.delete_user(db, 999)
