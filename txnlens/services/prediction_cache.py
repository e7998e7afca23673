"""
Prediction Cache Service

Remembers classification results per user, keyed by a short hash of the
normalized note, so repeated notes skip the classifier and remote providers.
Entries expire after a TTL (checked on lookup); when a user's cache is full
the least recently used 20% are evicted before inserting.
"""

import asyncio
import hashlib
import logging
import math
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Optional, Tuple

from txnlens.core.storage import LocalStore
from txnlens.ml.tokenizer import normalize
from txnlens.models.prediction_model import CacheEntry, CachedPrediction

logger = logging.getLogger(__name__)

EVICTION_FRACTION = 0.2


def cache_key(text: str) -> Tuple[str, str]:
    """(first 16 hex chars of SHA-256 of the normalized text, normalized text)"""
    normalized = normalize(text)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16], normalized


class PredictionCache:
    def __init__(
        self,
        store: LocalStore,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._requests: Dict[str, int] = defaultdict(int)
        self._hits: Dict[str, int] = defaultdict(int)

    @staticmethod
    def _store_key(user_id: str) -> str:
        return f"prediction_cache_{user_id}"

    async def _load(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        data = await self.store.get_item(self._store_key(user_id))
        return data if isinstance(data, dict) else {}

    async def _save(self, user_id: str, entries: Dict[str, Dict[str, Any]]) -> None:
        try:
            await self.store.set_item(self._store_key(user_id), entries)
        except OSError as e:
            logger.error("Failed to persist prediction cache for %s: %s", user_id, e)

    async def lookup(self, user_id: str, text: str) -> Optional[CachedPrediction]:
        """Cached result for ``text`` or None; expired entries are dropped"""
        key, _ = cache_key(text)
        async with self._locks[user_id]:
            entries = await self._load(user_id)
            self._requests[user_id] += 1
            raw = entries.get(key)
            if raw is None:
                return None

            try:
                entry = CacheEntry.model_validate(raw)
            except ValueError as e:
                logger.warning("Dropping unreadable cache entry %s: %s", key, e)
                entries.pop(key, None)
                await self._save(user_id, entries)
                return None

            now = self.clock()
            if now - entry.timestamp > self.ttl_seconds:
                entries.pop(key, None)
                await self._save(user_id, entries)
                return None

            self._hits[user_id] += 1
            entries[key] = dict(raw, timestamp=now, hit_count=entry.hit_count + 1)
            await self._save(user_id, entries)
            return entry.result.model_copy(deep=True)

    async def store_prediction(self, user_id: str, text: str, prediction: CachedPrediction) -> None:
        """Insert or replace the entry for ``text``; replacing counts as a hit"""
        key, normalized = cache_key(text)
        async with self._locks[user_id]:
            entries = await self._load(user_id)
            now = self.clock()

            hit_count = 0
            existing = entries.get(key)
            if existing is not None:
                hit_count = int(existing.get("hit_count", 0)) + 1
            elif len(entries) >= self.max_entries:
                to_remove = math.ceil(self.max_entries * EVICTION_FRACTION)
                oldest = sorted(entries, key=lambda k: entries[k].get("timestamp", 0))[:to_remove]
                for k in oldest:
                    del entries[k]
                logger.debug("Evicted %d cache entries for %s", len(oldest), user_id)

            entries[key] = CacheEntry(
                result=prediction,
                timestamp=now,
                hit_count=hit_count,
                text_hash=key,
                normalized_text=normalized,
            ).model_dump(mode="json")
            await self._save(user_id, entries)

    async def invalidate(self, user_id: str, text: Optional[str] = None) -> None:
        """Drop one entry, or the whole user cache when ``text`` is None"""
        async with self._locks[user_id]:
            if text is None:
                await self._save(user_id, {})
                return
            key, _ = cache_key(text)
            entries = await self._load(user_id)
            if entries.pop(key, None) is not None:
                await self._save(user_id, entries)

    async def stats(self, user_id: str) -> Dict[str, Any]:
        entries = await self._load(user_id)
        timestamps = [e.get("timestamp", 0) for e in entries.values()]
        requests_ = self._requests[user_id]
        hits = self._hits[user_id]
        return {
            "total_entries": len(entries),
            "total_hits": hits,
            "hit_rate": (hits / requests_) * 100 if requests_ else 0.0,
            "oldest_entry": min(timestamps) if timestamps else None,
            "newest_entry": max(timestamps) if timestamps else None,
        }
