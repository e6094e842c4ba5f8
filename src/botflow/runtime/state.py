# src/botflow/runtime/state.py
"""Per-plugin key/value state behind the routine's ``state`` argument.

Routines never see the store itself: they get a PluginState bound to their
own plugin id, so one plugin cannot read another's keys.
"""

from __future__ import annotations

import asyncio
import json
import threading
from datetime import UTC, datetime
from typing import Any, Protocol, Self

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.pool import StaticPool

metadata = MetaData()

plugin_state_table = Table(
    "plugin_state",
    metadata,
    Column("plugin_id", String(128), nullable=False),
    Column("key", String(256), nullable=False),
    Column("value_json", Text, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("plugin_id", "key"),
)


class StateStore(Protocol):
    """Async key/value storage scoped by plugin id. Values are JSON data."""

    async def get(self, plugin_id: str, key: str) -> Any: ...

    async def set(self, plugin_id: str, key: str, value: Any) -> None: ...

    async def delete(self, plugin_id: str, key: str) -> bool: ...

    async def list(self, plugin_id: str) -> list[str]: ...

    async def exists(self, plugin_id: str, key: str) -> bool: ...


def _encode(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class InMemoryStateStore:
    """Process-local store. Values are JSON round-tripped, as the SQL store does."""

    def __init__(self) -> None:
        self._values: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    async def get(self, plugin_id: str, key: str) -> Any:
        with self._lock:
            encoded = self._values.get((plugin_id, key))
        return None if encoded is None else json.loads(encoded)

    async def set(self, plugin_id: str, key: str, value: Any) -> None:
        encoded = _encode(value)
        with self._lock:
            self._values[(plugin_id, key)] = encoded

    async def delete(self, plugin_id: str, key: str) -> bool:
        with self._lock:
            return self._values.pop((plugin_id, key), None) is not None

    async def list(self, plugin_id: str) -> list[str]:
        with self._lock:
            return sorted(key for owner, key in self._values if owner == plugin_id)

    async def exists(self, plugin_id: str, key: str) -> bool:
        with self._lock:
            return (plugin_id, key) in self._values


class SqlStateStore:
    """State persisted in the ``plugin_state`` table through SQLAlchemy Core.

    Blocking database calls run in a worker thread so a slow database
    never stalls the event loop.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> Self:
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, so every worker thread sees the same database.
            engine = create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
        else:
            engine = create_engine(url)
        return cls(engine)

    @classmethod
    def in_memory(cls) -> Self:
        return cls.from_url("sqlite://")

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    def _get(self, plugin_id: str, key: str) -> Any:
        query = select(plugin_state_table.c.value_json).where(
            plugin_state_table.c.plugin_id == plugin_id,
            plugin_state_table.c.key == key,
        )
        with self._engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return None if row is None else json.loads(row.value_json)

    def _set(self, plugin_id: str, key: str, value: Any) -> None:
        encoded = _encode(value)
        with self._engine.begin() as conn:
            conn.execute(
                delete(plugin_state_table).where(
                    plugin_state_table.c.plugin_id == plugin_id,
                    plugin_state_table.c.key == key,
                )
            )
            conn.execute(
                plugin_state_table.insert().values(
                    plugin_id=plugin_id,
                    key=key,
                    value_json=encoded,
                    updated_at=datetime.now(UTC),
                )
            )

    def _delete(self, plugin_id: str, key: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(plugin_state_table).where(
                    plugin_state_table.c.plugin_id == plugin_id,
                    plugin_state_table.c.key == key,
                )
            )
        return result.rowcount > 0

    def _list(self, plugin_id: str) -> list[str]:
        query = (
            select(plugin_state_table.c.key)
            .where(plugin_state_table.c.plugin_id == plugin_id)
            .order_by(plugin_state_table.c.key)
        )
        with self._engine.connect() as conn:
            return [row.key for row in conn.execute(query)]

    def _exists(self, plugin_id: str, key: str) -> bool:
        query = select(plugin_state_table.c.key).where(
            plugin_state_table.c.plugin_id == plugin_id,
            plugin_state_table.c.key == key,
        )
        with self._engine.connect() as conn:
            return conn.execute(query).fetchone() is not None

    async def get(self, plugin_id: str, key: str) -> Any:
        return await asyncio.to_thread(self._get, plugin_id, key)

    async def set(self, plugin_id: str, key: str, value: Any) -> None:
        await asyncio.to_thread(self._set, plugin_id, key, value)

    async def delete(self, plugin_id: str, key: str) -> bool:
        return await asyncio.to_thread(self._delete, plugin_id, key)

    async def list(self, plugin_id: str) -> list[str]:
        return await asyncio.to_thread(self._list, plugin_id)

    async def exists(self, plugin_id: str, key: str) -> bool:
        return await asyncio.to_thread(self._exists, plugin_id, key)


class PluginState:
    """The ``state`` object a routine receives: a store bound to one plugin."""

    __slots__ = ("_plugin_id", "_store")

    def __init__(self, store: StateStore, plugin_id: str) -> None:
        self._store = store
        self._plugin_id = plugin_id

    async def get(self, key: str) -> Any:
        return await self._store.get(self._plugin_id, str(key))

    async def set(self, key: str, value: Any) -> None:
        await self._store.set(self._plugin_id, str(key), value)

    async def delete(self, key: str) -> bool:
        return await self._store.delete(self._plugin_id, str(key))

    async def list(self) -> list[str]:
        return await self._store.list(self._plugin_id)

    async def exists(self, key: str) -> bool:
        return await self._store.exists(self._plugin_id, str(key))
