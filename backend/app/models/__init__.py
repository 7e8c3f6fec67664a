from app.models.config_entry import ConfigEntry, Environment
from app.models.token import Token
from app.models.user import User, UserPublic

__all__ = [
    "ConfigEntry",
    "Environment",
    "Token",
    "User",
    "UserPublic",
]
