"""Config API endpoints. Reads are public, writes need a bearer token."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from app.api.deps import get_config_manager, get_current_user
from app.models.config_entry import Environment
from app.models.user import UserPublic
from app.services.config_manager import ConfigManager

router = APIRouter(prefix="/config", tags=["config"])


class ConfigCreate(BaseModel):
    key: str = ""
    value: str | None = None
    environment: Environment | None = None


class ConfigUpdate(BaseModel):
    value: str | None = None
    environment: Environment | None = None


class ConfigEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key: str
    value: str
    environment: Environment
    created_at: datetime
    updated_at: datetime


class ConfigListResponse(BaseModel):
    environment: Environment
    config: list[ConfigEntryResponse]


class ConfigSearchResponse(ConfigListResponse):
    pattern: str


class ConfigValueResponse(BaseModel):
    key: str
    value: str
    environment: Environment


def _resolve(config: ConfigManager, environment: Environment | None) -> Environment:
    return environment or config.default_environment


# --- Reads ---


@router.get("", response_model=ConfigListResponse)
async def list_config(
    environment: Environment | None = None,
    config: ConfigManager = Depends(get_config_manager),
):
    env = _resolve(config, environment)
    return ConfigListResponse(
        environment=env,
        config=config.get_all(env),
    )


@router.get("/search/{pattern}", response_model=ConfigSearchResponse)
async def search_config(
    pattern: str,
    environment: Environment | None = None,
    config: ConfigManager = Depends(get_config_manager),
):
    env = _resolve(config, environment)
    return ConfigSearchResponse(
        pattern=pattern,
        environment=env,
        config=config.get_by_pattern(pattern, env),
    )


@router.get("/{key}", response_model=ConfigValueResponse)
async def get_config(
    key: str,
    environment: Environment | None = None,
    config: ConfigManager = Depends(get_config_manager),
):
    env = _resolve(config, environment)
    value = config.get(key, env)
    if value is None:
        raise HTTPException(status_code=404, detail="Config key not found")
    return ConfigValueResponse(key=key, value=value, environment=env)


# --- Writes ---


@router.post("", response_model=ConfigEntryResponse)
async def create_config(
    body: ConfigCreate,
    config: ConfigManager = Depends(get_config_manager),
    _user: UserPublic = Depends(get_current_user),
):
    if not body.key or body.value is None:
        raise HTTPException(status_code=400, detail="Key and value required")
    return config.set(body.key, body.value, body.environment)


@router.put("/{key}", response_model=ConfigEntryResponse)
async def update_config(
    key: str,
    body: ConfigUpdate,
    config: ConfigManager = Depends(get_config_manager),
    _user: UserPublic = Depends(get_current_user),
):
    if body.value is None:
        raise HTTPException(status_code=400, detail="Value required")
    return config.set(key, body.value, body.environment)


@router.delete("/{key}")
async def delete_config(
    key: str,
    environment: Environment | None = None,
    config: ConfigManager = Depends(get_config_manager),
    _user: UserPublic = Depends(get_current_user),
):
    env = _resolve(config, environment)
    if not config.delete(key, env):
        raise HTTPException(status_code=404, detail="Config key not found")
    return {"detail": "Config deleted", "key": key, "environment": env}
