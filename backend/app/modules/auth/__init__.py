"""Authentication module."""

from app.modules.auth.jwt import (
    TokenPayload,
    create_access_token,
    decode_token,
    get_current_user_id,
    get_user_id_from_token,
)
from app.modules.auth.models import User, hash_password, verify_password
from app.modules.auth.repository import UserRepository
from app.modules.auth.service import (
    AuthenticationError,
    AuthService,
    CredentialStoreError,
    UserExistsError,
)

__all__ = [
    # Models
    "User",
    # Password utilities
    "hash_password",
    "verify_password",
    # Repository
    "UserRepository",
    # JWT
    "TokenPayload",
    "create_access_token",
    "decode_token",
    "get_user_id_from_token",
    "get_current_user_id",
    # Service
    "AuthService",
    "AuthenticationError",
    "CredentialStoreError",
    "UserExistsError",
]
