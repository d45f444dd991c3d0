import asyncio
import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import redis.asyncio as redis
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from deskflow.core.errors import ContextStoreError
from deskflow.core.settings import settings, ContextSettings
from deskflow.db.models import ConversationContextRecord

logger = logging.getLogger(__name__)

LAST_UPDATED = "lastUpdated"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def last_updated_of(document: Dict[str, Any]) -> Optional[datetime]:
    stamp = document.get(LAST_UPDATED)
    if not stamp:
        return None
    try:
        value = datetime.fromisoformat(stamp)
    except (TypeError, ValueError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value

def merge_document(conversation_id: str, existing: Optional[Dict[str, Any]], partial: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Shallow merge: top-level keys of `partial` replace the stored ones wholesale."""
    merged = dict(existing) if existing else {"id": conversation_id}
    merged.update(copy.deepcopy(partial))
    merged["id"] = conversation_id
    merged[LAST_UPDATED] = now.isoformat()
    return merged

class ContextStore(ABC):
    """
    Per-conversation JSON documents. `update` is read-modify-write without
    concurrency control: callers serialise events per conversation id.
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def update(self, conversation_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merges `partial` into the stored (or a fresh) document and returns the result."""
        pass

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        pass

    @abstractmethod
    async def sweep_expired(self, max_age_minutes: int = 30) -> int:
        """Deletes documents untouched for longer than `max_age_minutes`; returns how many."""
        pass

class InMemoryContextStore(ContextStore):
    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            document = self._documents.get(conversation_id)
            return copy.deepcopy(document) if document is not None else None

    async def update(self, conversation_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            merged = merge_document(conversation_id, self._documents.get(conversation_id), partial, utcnow())
            self._documents[conversation_id] = merged
            return copy.deepcopy(merged)

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock:
            return self._documents.pop(conversation_id, None) is not None

    async def sweep_expired(self, max_age_minutes: int = 30) -> int:
        cutoff = utcnow() - timedelta(minutes=max_age_minutes)
        async with self._lock:
            expired = [
                cid for cid, document in self._documents.items()
                if (last_updated_of(document) or cutoff) < cutoff
            ]
            for cid in expired:
                del self._documents[cid]
        return len(expired)

class RedisContextStore(ContextStore):
    def __init__(self, client: redis.Redis, key_prefix: str = "deskflow:context:"):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, conversation_id: str) -> str:
        return f"{self.key_prefix}{conversation_id}"

    async def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.client.get(self._key(conversation_id))
        except (redis.RedisError, OSError) as e:
            raise ContextStoreError(f"Redis get failed for {conversation_id}: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ContextStoreError(f"Corrupt context document for {conversation_id}") from e

    async def update(self, conversation_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        existing = await self.get(conversation_id)
        merged = merge_document(conversation_id, existing, partial, utcnow())
        try:
            await self.client.set(self._key(conversation_id), json.dumps(merged))
        except (redis.RedisError, OSError) as e:
            raise ContextStoreError(f"Redis set failed for {conversation_id}: {e}") from e
        return merged

    async def delete(self, conversation_id: str) -> bool:
        try:
            return bool(await self.client.delete(self._key(conversation_id)))
        except (redis.RedisError, OSError) as e:
            raise ContextStoreError(f"Redis delete failed for {conversation_id}: {e}") from e

    async def sweep_expired(self, max_age_minutes: int = 30) -> int:
        cutoff = utcnow() - timedelta(minutes=max_age_minutes)
        removed = 0
        try:
            async for key in self.client.scan_iter(match=f"{self.key_prefix}*"):
                raw = await self.client.get(key)
                if raw is None:
                    continue
                try:
                    stamp = last_updated_of(json.loads(raw))
                except ValueError:
                    stamp = None
                if stamp is None or stamp < cutoff:
                    removed += await self.client.delete(key)
        except (redis.RedisError, OSError) as e:
            raise ContextStoreError(f"Redis sweep failed: {e}") from e
        return removed

class SQLContextStore(ContextStore):
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                record = await session.get(ConversationContextRecord, conversation_id)
                return dict(record.document) if record else None
        except SQLAlchemyError as e:
            raise ContextStoreError(f"Context load failed for {conversation_id}: {e}") from e

    async def update(self, conversation_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record = await session.get(ConversationContextRecord, conversation_id)
                    merged = merge_document(conversation_id, record.document if record else None, partial, now)
                    if record:
                        record.document = merged
                        record.updated_at = now
                    else:
                        session.add(ConversationContextRecord(
                            conversation_id=conversation_id,
                            document=merged,
                            updated_at=now,
                        ))
            return merged
        except SQLAlchemyError as e:
            raise ContextStoreError(f"Context save failed for {conversation_id}: {e}") from e

    async def delete(self, conversation_id: str) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(ConversationContextRecord).where(ConversationContextRecord.conversation_id == conversation_id)
                    )
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            raise ContextStoreError(f"Context delete failed for {conversation_id}: {e}") from e

    async def sweep_expired(self, max_age_minutes: int = 30) -> int:
        cutoff = utcnow() - timedelta(minutes=max_age_minutes)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    stmt = select(ConversationContextRecord.conversation_id).where(ConversationContextRecord.updated_at < cutoff)
                    expired = (await session.execute(stmt)).scalars().all()
                    if expired:
                        await session.execute(
                            delete(ConversationContextRecord).where(ConversationContextRecord.conversation_id.in_(expired))
                        )
                    return len(expired)
        except SQLAlchemyError as e:
            raise ContextStoreError(f"Context sweep failed: {e}") from e

def build_context_store(config: Optional[ContextSettings] = None, session_factory: Optional[async_sessionmaker] = None) -> ContextStore:
    config = config or settings.context
    backend = config.backend.lower()
    if backend == "redis":
        from deskflow.core.cache import CacheClient
        return RedisContextStore(CacheClient.get_client(), key_prefix=config.key_prefix)
    if backend == "sql":
        if session_factory is None:
            from deskflow.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        return SQLContextStore(session_factory)
    if backend != "memory":
        logger.warning(f"Unknown context backend '{config.backend}', using in-memory store")
    return InMemoryContextStore()
