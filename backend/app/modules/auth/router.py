"""Authentication router for user registration and login."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_request_settings
from app.core.database import get_db
from app.modules.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from app.modules.auth.service import (
    AuthenticationError,
    AuthService,
    CredentialStoreError,
    UserExistsError,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthService:
    settings = get_request_settings(request)
    return AuthService(db, settings.SECRET_KEY, settings.ACCESS_TOKEN_EXPIRE_MINUTES)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
)
async def register(
    data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Register a new user.

    Raises:
        HTTPException: 400 if the email is taken, 500 if the store fails
    """
    try:
        user = await service.register(email=data.email, password=data.password)
    except UserExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except CredentialStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return RegisterResponse(message="User registered", user_id=user.id)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login user",
)
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Authenticate and return a bearer token."""
    try:
        result = await service.login(email=data.email, password=data.password)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except CredentialStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return LoginResponse(token=result["token"], expires_in=result["expires_in"])
