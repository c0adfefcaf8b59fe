"""
Key-value storage capability used by CredentialStore.
Contract: get/set/remove on string keys and values. set_many/remove_many apply a group of
changes together; SqlStorage does it in one transaction, MemoryStorage under one lock.
"""
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from session_client.models import Base, StoredValue


class KeyValueStorage(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key; a missing key is not an error."""

    def set_many(self, items: Mapping[str, str]) -> None:
        for key, value in items.items():
            self.set(key, value)

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)


class MemoryStorage(KeyValueStorage):
    """Process-local storage. Lost on restart; used for tests and ephemeral sessions."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def set_many(self, items: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update(items)

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class SqlStorage(KeyValueStorage):
    """Durable storage in a SQL database (SQLite by default). Survives process restart."""

    def __init__(self, database_url: str):
        # In-memory SQLite needs StaticPool so every connection sees the same DB
        if database_url.startswith("sqlite:///:memory:"):
            self._engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
            self._engine = create_engine(database_url, connect_args=connect_args)
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        Base.metadata.create_all(bind=self._engine)

    def get(self, key: str) -> str | None:
        with self._sessionmaker() as db:
            row = db.get(StoredValue, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def set_many(self, items: Mapping[str, str]) -> None:
        with self._sessionmaker() as db, db.begin():
            for key, value in items.items():
                db.merge(StoredValue(key=key, value=value))

    def remove_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        with self._sessionmaker() as db, db.begin():
            db.execute(delete(StoredValue).where(StoredValue.key.in_(keys)))

    def keys(self) -> list[str]:
        with self._sessionmaker() as db:
            return list(db.scalars(select(StoredValue.key)))

    def dispose(self) -> None:
        self._engine.dispose()
