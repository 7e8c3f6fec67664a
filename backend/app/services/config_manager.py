import logging

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.errors import StorageError
from app.models.base import utcnow
from app.models.config_entry import ConfigEntry, Environment

logger = logging.getLogger(__name__)


class ConfigManager:
    """Key/value configuration scoped by environment."""

    def __init__(
        self,
        session: Session,
        default_environment: Environment | str = Environment.production,
    ):
        self.session = session
        self.default_environment = Environment(default_environment)

    def _env(self, environment: Environment | str | None) -> str:
        """Resolve an optional environment name. Raises ValueError if unknown."""
        if environment is None:
            return self.default_environment.value
        return Environment(environment).value

    def _find(self, key: str, env: str) -> ConfigEntry | None:
        return self.session.exec(
            select(ConfigEntry).where(
                ConfigEntry.key == key,
                ConfigEntry.environment == env,
            )
        ).first()

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"Config {action} failed")
            raise StorageError(f"Failed to {action} config entry") from exc

    def set(
        self, key: str, value: str, environment: Environment | str | None = None
    ) -> ConfigEntry:
        """Create or update the entry for (key, environment).

        This is a read followed by a write. Two concurrent calls for the same
        pair can both miss the read; the loser then fails on the unique
        constraint and surfaces as StorageError.
        """
        env = self._env(environment)
        now = utcnow()
        try:
            entry = self._find(key, env)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to read config entry") from exc

        if entry:
            entry.value = value
            entry.updated_at = now
        else:
            entry = ConfigEntry(
                key=key,
                value=value,
                environment=env,
                created_at=now,
                updated_at=now,
            )
        self.session.add(entry)
        self._commit("set")
        self.session.refresh(entry)
        logger.info(f"Set config {key} ({env})")
        return entry

    def get(self, key: str, environment: Environment | str | None = None) -> str | None:
        env = self._env(environment)
        try:
            entry = self._find(key, env)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to read config entry") from exc
        return entry.value if entry else None

    def get_all(self, environment: Environment | str | None = None) -> list[ConfigEntry]:
        """All entries for the environment, ordered by key."""
        env = self._env(environment)
        try:
            return list(
                self.session.exec(
                    select(ConfigEntry)
                    .where(ConfigEntry.environment == env)
                    .order_by(ConfigEntry.key)
                ).all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to list config entries") from exc

    def delete(self, key: str, environment: Environment | str | None = None) -> bool:
        """Delete the entry. Returns False if nothing matched."""
        env = self._env(environment)
        try:
            result = self.session.exec(
                delete(ConfigEntry).where(
                    ConfigEntry.key == key,
                    ConfigEntry.environment == env,
                )
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to delete config entry") from exc
        self._commit("delete")
        if result.rowcount:
            logger.info(f"Deleted config {key} ({env})")
        return result.rowcount > 0

    def exists(self, key: str, environment: Environment | str | None = None) -> bool:
        env = self._env(environment)
        try:
            count = self.session.exec(
                select(func.count())
                .select_from(ConfigEntry)
                .where(
                    ConfigEntry.key == key,
                    ConfigEntry.environment == env,
                )
            ).one()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to read config entry") from exc
        return count > 0

    def get_by_pattern(
        self, pattern: str, environment: Environment | str | None = None
    ) -> list[ConfigEntry]:
        """Entries whose key contains `pattern` anywhere, ordered by key.

        The pattern is passed to LIKE as-is, so `%` and `_` keep their
        wildcard meaning.
        """
        env = self._env(environment)
        try:
            return list(
                self.session.exec(
                    select(ConfigEntry)
                    .where(
                        ConfigEntry.key.like(f"%{pattern}%"),
                        ConfigEntry.environment == env,
                    )
                    .order_by(ConfigEntry.key)
                ).all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Failed to search config entries") from exc
