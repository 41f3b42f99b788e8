from datetime import timedelta

import jwt
import pytest

from fragrance_battle.core.errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    InvalidCredentialsError,
    TokenExpiredError,
)
from fragrance_battle.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from fragrance_battle.services.auth_service import DEFAULT_COLLECTION_NAME, AuthService


@pytest.fixture
def auth(user_repo, collection_repo) -> AuthService:
    return AuthService(user_repo, collection_repo)


class TestPasswords:
    def test_hash_round_trip(self):
        hashed = hash_password("secret123")
        assert hashed.startswith("$2b$04$")
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("secret123") != hash_password("secret123")

    @pytest.mark.parametrize("stored", ["", "plaintext", "pbkdf2_sha256$1000$salt$abc"])
    def test_malformed_hash_never_verifies(self, stored):
        assert not verify_password("secret123", stored)

    def test_password_beyond_bcrypt_limit_never_verifies(self):
        assert not verify_password("x" * 100, hash_password("secret123"))


class TestTokens:
    def test_payload_carries_jti(self):
        payload = decode_access_token(create_access_token({"sub": "abc"}))
        assert payload["sub"] == "abc"
        assert payload["jti"]
        assert payload["exp"] > payload["iat"]

    def test_each_token_gets_its_own_jti(self):
        first = decode_access_token(create_access_token({"sub": "abc"}))
        second = decode_access_token(create_access_token({"sub": "abc"}))
        assert first["jti"] != second["jti"]

    def test_tampered_token_decodes_to_none(self):
        forged = jwt.encode({"sub": "abc"}, "some-other-key", algorithm="HS256")
        assert decode_access_token(forged) is None
        assert decode_access_token("not-a-jwt") is None

    def test_expired_token_raises(self):
        token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpiredError) as exc_info:
            decode_access_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"


class TestAuthService:
    async def test_register_creates_default_collection(self, auth, db):
        user, token = await auth.register("alice", "alice@example.com", "secret123")

        assert decode_access_token(token)["sub"] == str(user.id)
        assert [c.name for c in db.collections.values() if c.user_id == user.id] == [DEFAULT_COLLECTION_NAME]
        assert db.users[user.id].hashed_password != "secret123"

    async def test_register_rejects_duplicates(self, auth):
        await auth.register("alice", "alice@example.com", "secret123")

        with pytest.raises(ConflictError, match="email"):
            await auth.register("alice2", "ALICE@example.com", "secret123")
        with pytest.raises(ConflictError, match="Username"):
            await auth.register("alice", "other@example.com", "secret123")

    async def test_login(self, auth):
        registered, _ = await auth.register("alice", "alice@example.com", "secret123")

        user, token = await auth.login("alice@example.com", "secret123")
        assert user.id == registered.id
        assert decode_access_token(token)["username"] == "alice"

        with pytest.raises(InvalidCredentialsError):
            await auth.login("alice@example.com", "nope")
        with pytest.raises(InvalidCredentialsError):
            await auth.login("nobody@example.com", "secret123")

    async def test_deactivated_account_cannot_log_in(self, auth, db):
        user, _ = await auth.register("alice", "alice@example.com", "secret123")
        db.users[user.id].is_active = False

        with pytest.raises(AuthenticationError, match="deactivated"):
            await auth.login("alice@example.com", "secret123")

    async def test_change_password(self, auth):
        user, _ = await auth.register("alice", "alice@example.com", "secret123")

        with pytest.raises(BadRequestError):
            await auth.change_password(user, "wrong", "newsecret")
        with pytest.raises(BadRequestError):
            await auth.change_password(user, "secret123", "secret123")

        await auth.change_password(user, "secret123", "newsecret")
        await auth.login("alice@example.com", "newsecret")
        with pytest.raises(InvalidCredentialsError):
            await auth.login("alice@example.com", "secret123")

    async def test_update_profile(self, auth):
        alice, _ = await auth.register("alice", "alice@example.com", "secret123")
        await auth.register("bob", "bob@example.com", "secret123")

        with pytest.raises(ConflictError):
            await auth.update_profile(alice, username="bob")
        with pytest.raises(ConflictError):
            await auth.update_profile(alice, email="bob@example.com")

        updated = await auth.update_profile(alice, username="alicia", bio="Loves vetiver")
        assert (updated.username, updated.bio, updated.email) == ("alicia", "Loves vetiver", "alice@example.com")

    async def test_delete_account_removes_owned_data(self, auth, db):
        user, _ = await auth.register("alice", "alice@example.com", "secret123")

        await auth.delete_account(user)

        assert user.id not in db.users
        assert not any(c.user_id == user.id for c in db.collections.values())
