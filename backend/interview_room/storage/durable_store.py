from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol


logger = logging.getLogger("durable_store")


class DurableStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


async def get_json(store: DurableStore, key: str, default: Any = None) -> Any:
    raw = await store.get(key)
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Stored value is not valid JSON | key=%s", key)
        return default


async def set_json(store: DurableStore, key: str, value: Any) -> None:
    await store.set(key, json.dumps(value, ensure_ascii=False))


class LocalDurableStore:
    """Process-local key/value store, optionally mirrored to a JSON file.

    The file holds one flat object; a restarted process picks up values
    written before the restart.
    """

    def __init__(self, path: Path | None = None):
        self._lock = asyncio.Lock()
        self._path = path
        self._values: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Durable store file unreadable, starting empty | path=%s err=%s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _write_file(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self._path)

    async def _flush(self) -> None:
        if self._path is None:
            return
        # serialized under the lock, written off the event loop
        payload = json.dumps(self._values, ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write_file, payload)

    async def get(self, key: str) -> str | None:
        if not key:
            return None
        async with self._lock:
            return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        if not key:
            return
        async with self._lock:
            self._values[key] = str(value)
            await self._flush()

    async def remove(self, key: str) -> None:
        if not key:
            return
        async with self._lock:
            if self._values.pop(key, None) is not None:
                await self._flush()


class RedisDurableStore:
    """Redis-backed durable storage.

    Keys:
    - room:{namespace}:storage (hash)
    """

    def __init__(self, redis_url: str, namespace: str = "default"):
        try:
            import redis.asyncio as redis_async  # type: ignore
        except Exception as exc:
            raise RuntimeError("redis package not installed; install 'redis' to enable redis durable storage") from exc

        self._redis = redis_async.from_url(redis_url, decode_responses=True)
        self._namespace = str(namespace or "default")

    def _hash_key(self) -> str:
        return f"room:{self._namespace}:storage"

    async def get(self, key: str) -> str | None:
        if not key:
            return None
        value = await self._redis.hget(self._hash_key(), key)
        return None if value is None else str(value)

    async def set(self, key: str, value: str) -> None:
        if not key:
            return
        await self._redis.hset(self._hash_key(), key, str(value))

    async def remove(self, key: str) -> None:
        if not key:
            return
        await self._redis.hdel(self._hash_key(), key)


class NamespacedStore:
    """Scopes every key of an underlying store to one browser client."""

    def __init__(self, inner: DurableStore, namespace: str):
        self._inner = inner
        self._prefix = f"{str(namespace or 'anonymous').strip()}:"

    async def get(self, key: str) -> str | None:
        return await self._inner.get(self._prefix + key)

    async def set(self, key: str, value: str) -> None:
        await self._inner.set(self._prefix + key, value)

    async def remove(self, key: str) -> None:
        await self._inner.remove(self._prefix + key)


def build_durable_store() -> DurableStore:
    use_redis = str(os.getenv("USE_REDIS_DURABLE_STORE", "false")).strip().lower() in {"1", "true", "yes", "on"}
    if not use_redis:
        raw_path = str(os.getenv("DURABLE_STORE_PATH") or "").strip()
        return LocalDurableStore(Path(raw_path) if raw_path else None)

    redis_url = str(os.getenv("REDIS_URL") or "").strip()
    if not redis_url:
        raise RuntimeError("USE_REDIS_DURABLE_STORE=true requires REDIS_URL")
    return RedisDurableStore(redis_url)
