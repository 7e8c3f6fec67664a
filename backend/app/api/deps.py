from datetime import timedelta

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.models.user import UserPublic
from app.services.auth_manager import AuthManager
from app.services.config_manager import ConfigManager

security = HTTPBearer(auto_error=False)


def get_auth_manager(session: Session = Depends(get_session)) -> AuthManager:
    return AuthManager(
        session,
        token_expiry=timedelta(hours=settings.token_expire_hours),
        password_scheme=settings.password_hash_scheme,
    )


def get_config_manager(session: Session = Depends(get_session)) -> ConfigManager:
    return ConfigManager(session, default_environment=settings.default_environment)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    return credentials.credentials if credentials else None


async def get_current_user(
    token: str | None = Depends(get_bearer_token),
    auth: AuthManager = Depends(get_auth_manager),
) -> UserPublic:
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    user = auth.validate_token(token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user
