from pydantic_settings import BaseSettings

from app.models.config_entry import Environment


class Settings(BaseSettings):
    database_url: str = "sqlite:///data/config.db"
    token_expire_hours: int = 24
    default_environment: Environment = Environment.production
    min_password_length: int = 8
    password_hash_scheme: str = "sha256"  # "sha256" | "bcrypt"
    log_level: str = "INFO"

    class Config:
        env_prefix = "CONFIGSVC_"


settings = Settings()
