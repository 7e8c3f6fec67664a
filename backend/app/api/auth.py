from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.deps import get_auth_manager, get_bearer_token, get_current_user
from app.config import settings
from app.errors import DuplicateUsername
from app.models.user import UserPublic
from app.services.auth_manager import AuthManager

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str = ""
    password: str = ""


class RegisterResponse(BaseModel):
    id: int
    username: str


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    auth: AuthManager = Depends(get_auth_manager),
):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password required")
    if len(body.password) < settings.min_password_length:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.min_password_length} characters",
        )
    try:
        user_id = auth.create_user(body.username, body.password)
    except DuplicateUsername:
        raise HTTPException(status_code=409, detail="Username already exists")
    return RegisterResponse(id=user_id, username=body.username)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, auth: AuthManager = Depends(get_auth_manager)):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password required")
    token = auth.authenticate(body.username, body.password)
    if not token:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(token=token)


@router.post("/logout")
async def logout(
    token: str | None = Depends(get_bearer_token),
    auth: AuthManager = Depends(get_auth_manager),
):
    if token:
        auth.revoke_token(token)
    return {"detail": "Logged out"}


@router.get("/me", response_model=UserPublic)
async def me(user: UserPublic = Depends(get_current_user)):
    return user
