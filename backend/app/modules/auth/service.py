"""Authentication service for registration and login."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import log_error, log_info
from app.modules.auth.jwt import create_access_token
from app.modules.auth.models import User
from app.modules.auth.repository import UserRepository

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Exception raised for authentication failures."""

    pass


class UserExistsError(Exception):
    """Exception raised when user already exists."""

    pass


class CredentialStoreError(Exception):
    """The user store could not be read or written."""

    pass


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        session: AsyncSession,
        secret_key: str,
        token_expire_minutes: int,
        user_repo: Optional[UserRepository] = None,
    ):
        """Initialize auth service.

        Args:
            session: Async SQLAlchemy session
            secret_key: JWT signing key
            token_expire_minutes: Access token lifetime
            user_repo: Repository override, defaults to one bound to ``session``
        """
        self.session = session
        self.secret_key = secret_key
        self.token_expire_minutes = token_expire_minutes
        self.user_repo = user_repo or UserRepository(session)

    async def register(self, email: str, password: str) -> User:
        """Register a new user.

        Raises:
            UserExistsError: If email already registered
            CredentialStoreError: If the user store fails
        """
        email = email.lower().strip()

        try:
            if await self.user_repo.exists_by_email(email):
                raise UserExistsError(f"User with email {email} already exists")

            user = await self.user_repo.create(email=email, password=password)
            await self.session.commit()
        except IntegrityError:
            # Concurrent registration won the unique index.
            await self.session.rollback()
            raise UserExistsError(f"User with email {email} already exists")
        except SQLAlchemyError as e:
            await self.session.rollback()
            log_error(logger, "User registration failed", error=str(e))
            raise CredentialStoreError("Could not create user") from e

        log_info(logger, "User registered", user_id=str(user.id))
        return user

    async def login(self, email: str, password: str) -> dict:
        """Authenticate user and issue an access token.

        Returns:
            dict: ``token`` and ``expires_in``

        Raises:
            AuthenticationError: If credentials are invalid
            CredentialStoreError: If the user store fails
        """
        email = email.lower().strip()

        try:
            user = await self.user_repo.get_by_email(email)
        except SQLAlchemyError as e:
            log_error(logger, "User lookup failed", error=str(e))
            raise CredentialStoreError("Could not read user") from e

        # Same message for unknown email and bad password
        if user is None or not user.verify_password(password):
            raise AuthenticationError("Invalid email or password")

        token, expires_in = create_access_token(
            user.id, self.secret_key, self.token_expire_minutes
        )
        return {"token": token, "expires_in": expires_in}
