"""Authentication service."""

import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from fragrance_battle.core.config import settings
from fragrance_battle.core.errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    InvalidCredentialsError,
)
from fragrance_battle.core.security import create_access_token, hash_password, verify_password
from fragrance_battle.domain.entities import Collection, User
from fragrance_battle.domain.repositories import ICollectionRepository, IUserRepository

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "My Collection"
DEFAULT_COLLECTION_DESCRIPTION = "Your personal fragrance collection"


class AuthService:
    """Handles registration, login, profile and password operations."""

    def __init__(self, user_repository: IUserRepository, collection_repository: ICollectionRepository):
        self.user_repository = user_repository
        self.collection_repository = collection_repository

    async def register(self, username: str, email: str, password: str) -> tuple[User, str]:
        """Create the account plus its default collection and return it with a token."""
        if await self.user_repository.get_by_email(email):
            raise ConflictError("User with this email already exists")
        if await self.user_repository.get_by_username(username):
            raise ConflictError("Username is already taken")

        user = await self.user_repository.create(
            User(id=uuid4(), username=username, email=email, hashed_password=hash_password(password))
        )
        await self.collection_repository.create(
            Collection(
                id=uuid4(),
                user_id=user.id,
                name=DEFAULT_COLLECTION_NAME,
                description=DEFAULT_COLLECTION_DESCRIPTION,
            )
        )
        logger.info("User registered: %s", user.id)
        return user, self.issue_token(user)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.user_repository.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        logger.info("User logged in: %s", user.id)
        return user, self.issue_token(user)

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(
            data={"sub": str(user.id), "username": user.username},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )

    async def update_profile(
        self,
        user: User,
        username: Optional[str] = None,
        email: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> User:
        if username is not None and username != user.username:
            existing = await self.user_repository.get_by_username(username)
            if existing and existing.id != user.id:
                raise ConflictError("Username is already taken")
            user.username = username
        if email is not None and email.lower() != user.email.lower():
            existing = await self.user_repository.get_by_email(email)
            if existing and existing.id != user.id:
                raise ConflictError("User with this email already exists")
            user.email = email
        if bio is not None:
            user.bio = bio
        return await self.user_repository.update(user)

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise BadRequestError("Current password is incorrect")
        if current_password == new_password:
            raise BadRequestError("New password must differ from the current password")
        user.hashed_password = hash_password(new_password)
        await self.user_repository.update(user)
        logger.info("Password changed for user %s", user.id)

    async def delete_account(self, user: User) -> None:
        await self.user_repository.delete(user.id)
        logger.info("User %s deleted their account", user.id)
