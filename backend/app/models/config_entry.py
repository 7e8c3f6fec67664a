from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import utcnow


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class ConfigEntry(SQLModel, table=True):
    __tablename__ = "config"
    __table_args__ = (
        UniqueConstraint("key", "environment"),
        Index("idx_config_env", "environment"),
        Index("idx_config_key_env", "key", "environment"),
    )

    id: int | None = Field(default=None, primary_key=True)
    key: str
    value: str
    environment: str = Field(default=Environment.production.value)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
