from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy import Column, DateTime, String, Text, create_engine, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import CacheError

logger = logging.getLogger(__name__)

Base = declarative_base()


class CacheEntryModel(Base):
    __tablename__ = "cache_entries"
    key = Column(String, primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime)


class KeyValueStore:
    """
    Abstract string key-value storage underneath the persistent cache backend.
    Implementations raise CacheError for storage failures and return None for
    absent keys. All methods are synchronous, like browser local storage.
    """

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dict-backed store for local runs and tests.
    """

    def __init__(self):
        self.items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed store. Values are kept as UTF-8 strings.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", client: Optional[Any] = None):
        self.redis = client if client is not None else Redis.from_url(redis_url)

    @classmethod
    def probe(cls, redis_url: str) -> bool:
        try:
            return bool(Redis.from_url(redis_url, socket_connect_timeout=1).ping())
        except RedisError as exc:
            logger.info("Redis at %s is not usable as package cache: %s", redis_url, exc)
            return False

    def get_item(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(key)
        except RedisError as exc:
            raise CacheError(f"Redis read failed for {key}") from exc
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CacheError(f"Corrupt value stored under {key}") from exc
        return value

    def set_item(self, key: str, value: str) -> None:
        try:
            self.redis.set(key, value.encode("utf-8"))
        except RedisError as exc:
            raise CacheError(f"Redis write failed for {key}") from exc

    def remove_item(self, key: str) -> None:
        try:
            self.redis.delete(key)
        except RedisError as exc:
            raise CacheError(f"Redis delete failed for {key}") from exc


class SqlAlchemyKeyValueStore(KeyValueStore):
    """
    SQL-backed store using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        # sessions are opened from executor threads
        self.engine = create_engine(database_url, future=True, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._session() as session:
                model = session.get(CacheEntryModel, key)
                return model.value if model else None
        except SQLAlchemyError as exc:
            raise CacheError(f"Database read failed for {key}") from exc

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._session() as session:
                session.merge(CacheEntryModel(key=key, value=value, updated_at=datetime.utcnow()))
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheError(f"Database write failed for {key}") from exc

    def remove_item(self, key: str) -> None:
        try:
            with self._session() as session:
                session.execute(delete(CacheEntryModel).where(CacheEntryModel.key == key))
                session.commit()
        except SQLAlchemyError as exc:
            raise CacheError(f"Database delete failed for {key}") from exc
