from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from jobboard.database import get_db
from jobboard.errors import EmailTaken, Unauthenticated
from jobboard.models import User, UserRole
from jobboard.schemas import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from jobboard.auth import (
    COOKIE_NAME,
    TOKEN_EXPIRE_DAYS,
    create_session_token,
    get_current_user,
    hash_password,
    verify_password,
)
from jobboard.services.grade import get_ad_grade
from jobboard.services.lifecycle import delete_account
from jobboard.services.rate_limit import rate_limit

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="lax",
    )


def _user_response(user: User) -> UserResponse:
    response = UserResponse.model_validate(user)
    response.grade = get_ad_grade(user.total_paid_ad_days).grade
    return response


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register", limit=5, window_seconds=3600))],
)
async def register(request: RegisterRequest, response: Response, db: AsyncSession = Depends(get_db)):
    email = request.email.strip().lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first() is not None:
        raise EmailTaken("An account with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(request.password),
        name=request.name,
        role=UserRole(request.role),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    _set_session_cookie(response, create_session_token(user))
    return _user_response(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit("login", limit=10, window_seconds=60))],
)
async def login(request: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == request.email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(request.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    token = create_session_token(user)
    _set_session_cookie(response, token)
    return LoginResponse(success=True, message="Logged in successfully", token=token)


@router.post("/logout", response_model=LoginResponse)
async def logout(response: Response):
    response.delete_cookie(COOKIE_NAME)
    return LoginResponse(success=True, message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return _user_response(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    response: Response,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await delete_account(db, user)
    response.delete_cookie(COOKIE_NAME)
