"""Integration tests for IdentityService session transitions."""

import asyncio
from datetime import timedelta

import bcrypt
import pytest

import identity_core.kernel.identity.identity_service as service_module
from identity_core.kernel.identity import (
    AuthFailedError,
    InvalidArgumentError,
    NotFoundError,
    TokenClass,
    TokenExpiredError,
    TokenInvalidError,
)
from identity_core.kernel.identity.password import PasswordHasher
from identity_core.schemas import PrincipalDraft


class TestRegister:

    async def test_returns_principal_without_password(self, identity_service):
        user = await identity_service.register({"username": "alice", "password": "secret123"})
        dumped = user.model_dump()

        assert user.username == "alice"
        assert user.user_id
        assert "password" not in dumped
        assert "password_hash" not in dumped
        assert "id" not in dumped

    async def test_password_is_stored_hashed(self, identity_service, credential_store):
        await identity_service.register({"username": "alice", "password": "secret123"})
        stored = await credential_store.find_by_username("alice")

        assert stored.password_hash != "secret123"
        assert stored.password_hash.startswith("$2b$")

    async def test_without_password(self, identity_service, credential_store):
        await identity_service.register({"username": "sso_user", "identities": [{"provider": "github"}]})
        stored = await credential_store.find_by_username("sso_user")

        assert stored.password_hash is None
        assert stored.identities == [{"provider": "github"}]

    async def test_duplicate_username(self, identity_service, alice):
        with pytest.raises(InvalidArgumentError):
            await identity_service.register({"username": "alice", "password": "other123"})

    async def test_invalid_draft(self, identity_service):
        with pytest.raises(InvalidArgumentError):
            await identity_service.register({"username": "Not Valid", "password": "secret123"})


class TestLogin:

    async def test_end_to_end_register_then_login(self, identity_service):
        await identity_service.register({"username": "alice", "password": "secret123"})

        result = await identity_service.login(username="alice", password="secret123")

        assert result.access_token
        assert result.refresh_token
        assert result.token_type == "bearer"
        assert result.user.username == "alice"
        user = result.user.model_dump()
        assert "password" not in user
        assert "password_hash" not in user

    async def test_login_by_email(self, identity_service, alice):
        result = await identity_service.login(email="alice@example.com", password="secret123")

        assert result.user.user_id == alice.user_id

    async def test_wrong_password_is_auth_failed_not_not_found(self, identity_service, alice):
        with pytest.raises(AuthFailedError) as exc_info:
            await identity_service.login(username="alice", password="wrong-password")

        assert not isinstance(exc_info.value, NotFoundError)

    async def test_unknown_user_is_auth_failed(self, identity_service):
        with pytest.raises(AuthFailedError):
            await identity_service.login(username="mallory", password="secret123")

    async def test_user_without_password_cannot_log_in(self, identity_service):
        await identity_service.register({"username": "sso_user"})

        with pytest.raises(AuthFailedError):
            await identity_service.login(username="sso_user", password="anything")

    async def test_user_without_password_still_pays_the_bcrypt_cost(self, identity_service, monkeypatch):
        await identity_service.register({"username": "sso_user"})
        compared = []
        monkeypatch.setattr(service_module, "_compare_dummy", compared.append)

        with pytest.raises(AuthFailedError):
            await identity_service.login(username="sso_user", password="anything")

        assert compared == ["anything"]

    async def test_login_with_the_registered_email_spelling(self, identity_service):
        bob = await identity_service.register({"email": "Bob@Example.COM", "password": "secret123"})

        result = await identity_service.login(email="Bob@Example.COM", password="secret123")

        assert result.user.user_id == bob.user_id
        assert await identity_service.logout_everywhere(email="Bob@Example.COM") == 1

    async def test_outdated_hash_is_upgraded_on_login(self, identity_service, credential_store):
        weak = bcrypt.hashpw(b"secret123", bcrypt.gensalt(rounds=4)).decode("utf-8")
        bob = await credential_store.insert(PrincipalDraft(username="bob"), password_hash=weak)

        await identity_service.login(username="bob", password="secret123")

        stored = (await credential_store.find_by_id(bob.user_id)).password_hash
        assert stored != weak
        assert not PasswordHasher.needs_rehash(stored)
        assert (await identity_service.login(username="bob", password="secret123")).user.user_id == bob.user_id

    @pytest.mark.parametrize("kwargs", [
        {"password": "secret123"},
        {"username": "alice", "email": "alice@example.com", "password": "secret123"},
        {"username": "alice"},
        {"username": "alice", "password": ""},
    ])
    async def test_invalid_arguments(self, identity_service, alice, kwargs):
        with pytest.raises(InvalidArgumentError):
            await identity_service.login(**kwargs)

    async def test_records_last_login(self, identity_service, credential_store, alice):
        assert (await credential_store.find_by_id(alice.user_id)).last_login is None

        result = await identity_service.login(username="alice", password="secret123")

        assert result.user.last_login is not None
        assert (await credential_store.find_by_id(alice.user_id)).last_login is not None

    async def test_persists_refresh_token(self, identity_service, credential_store, alice):
        result = await identity_service.login(username="alice", password="secret123")

        assert await credential_store.has_refresh_token(result.refresh_token)
        assert await credential_store.count_refresh_tokens(alice.user_id) == 1

    async def test_tokens_carry_the_public_projection(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")
        payload = identity_service.jwt_manager.verify(TokenClass.ACCESS, result.access_token)

        assert payload == result.user.claims()
        assert "password_hash" not in payload
        assert "id" not in payload

    async def test_concurrent_logins_create_distinct_sessions(self, identity_service, credential_store, alice):
        first, second = await asyncio.gather(
            identity_service.login(username="alice", password="secret123"),
            identity_service.login(username="alice", password="secret123"),
        )

        assert first.refresh_token != second.refresh_token
        assert await credential_store.count_refresh_tokens(alice.user_id) == 2


class TestValidateAccessToken:

    async def test_valid(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")

        validation = await identity_service.validate_access_token(result.access_token)

        assert validation.validated is True
        assert validation.user["user_id"] == alice.user_id

    @pytest.mark.parametrize("token", ["", None, "garbage", "a.b.c"])
    async def test_invalid_never_raises(self, identity_service, token):
        validation = await identity_service.validate_access_token(token)

        assert validation.validated is False
        assert validation.user is None

    async def test_refresh_token_is_not_an_access_token(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")

        validation = await identity_service.validate_access_token(result.refresh_token)

        assert validation.validated is False

    async def test_expired(self, identity_service, alice):
        token = identity_service.jwt_manager.generate(
            TokenClass.ACCESS, alice.claims(), expires_in=timedelta(milliseconds=1)
        )
        await asyncio.sleep(2.1)

        validation = await identity_service.validate_access_token(token)

        assert validation.validated is False


class TestRefreshAccessToken:

    async def test_issues_a_new_access_token(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")

        access_token = await identity_service.refresh_access_token(result.refresh_token)

        validation = await identity_service.validate_access_token(access_token)
        assert validation.validated is True
        assert validation.user == result.user.claims()

    async def test_refresh_token_is_not_rotated(self, identity_service, credential_store, alice):
        result = await identity_service.login(username="alice", password="secret123")

        await identity_service.refresh_access_token(result.refresh_token)
        await identity_service.refresh_access_token(result.refresh_token)

        assert await credential_store.has_refresh_token(result.refresh_token)
        assert await credential_store.count_refresh_tokens(alice.user_id) == 1

    async def test_fails_after_logout(self, identity_service, credential_store, alice):
        result = await identity_service.login(username="alice", password="secret123")
        await identity_service.logout(result.refresh_token)

        with pytest.raises(TokenInvalidError):
            await identity_service.refresh_access_token(result.refresh_token)

        assert await credential_store.count_refresh_tokens(alice.user_id) == 0

    async def test_access_token_is_rejected(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")

        with pytest.raises(TokenInvalidError):
            await identity_service.refresh_access_token(result.access_token)

    async def test_expired_token_is_purged(self, identity_service, credential_store, alice):
        token = identity_service.jwt_manager.generate(
            TokenClass.REFRESH, alice.claims(), expires_in=timedelta(milliseconds=1)
        )
        await credential_store.add_refresh_token(alice.user_id, token)
        await asyncio.sleep(2.1)

        with pytest.raises(TokenExpiredError):
            await identity_service.refresh_access_token(token)

        assert not await credential_store.has_refresh_token(token)

    async def test_tampered_token_is_purged(self, identity_service, credential_store, alice):
        result = await identity_service.login(username="alice", password="secret123")
        tampered = result.refresh_token[:-4] + ("AAAA" if not result.refresh_token.endswith("AAAA") else "BBBB")
        await credential_store.add_refresh_token(alice.user_id, tampered)

        with pytest.raises(TokenInvalidError):
            await identity_service.refresh_access_token(tampered)

        assert not await credential_store.has_refresh_token(tampered)
        assert await credential_store.has_refresh_token(result.refresh_token)

    async def test_empty_token(self, identity_service):
        with pytest.raises(InvalidArgumentError):
            await identity_service.refresh_access_token("")


class TestLogout:

    async def test_removes_one_session(self, identity_service, credential_store, alice):
        first = await identity_service.login(username="alice", password="secret123")
        second = await identity_service.login(username="alice", password="secret123")

        await identity_service.logout(first.refresh_token)

        assert not await credential_store.has_refresh_token(first.refresh_token)
        assert await credential_store.has_refresh_token(second.refresh_token)

    async def test_is_idempotent(self, identity_service, alice):
        result = await identity_service.login(username="alice", password="secret123")

        await identity_service.logout(result.refresh_token)
        await identity_service.logout(result.refresh_token)
        await identity_service.logout("never-issued")

    async def test_requires_a_token(self, identity_service):
        with pytest.raises(InvalidArgumentError):
            await identity_service.logout("")


class TestLogoutEverywhere:

    async def test_removes_every_session_of_one_principal(self, identity_service, credential_store, alice):
        bob = await identity_service.register({"username": "bob", "password": "hunter22"})
        alice_sessions = [
            await identity_service.login(username="alice", password="secret123")
            for _ in range(3)
        ]
        await identity_service.login(username="bob", password="hunter22")

        removed = await identity_service.logout_everywhere(username="alice")

        assert removed == 3
        assert await credential_store.count_refresh_tokens(alice.user_id) == 0
        assert await credential_store.count_refresh_tokens(bob.user_id) == 1
        with pytest.raises(TokenInvalidError):
            await identity_service.refresh_access_token(alice_sessions[0].refresh_token)

    async def test_by_email_with_no_sessions(self, identity_service, alice):
        assert await identity_service.logout_everywhere(email="alice@example.com") == 0

    async def test_unknown_principal(self, identity_service):
        with pytest.raises(NotFoundError):
            await identity_service.logout_everywhere(username="nobody")

    async def test_requires_exactly_one_identifier(self, identity_service):
        with pytest.raises(InvalidArgumentError):
            await identity_service.logout_everywhere()
