"""Per-session conversation memory and the session store."""

from __future__ import annotations

import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from admissions_rag.metrics.observability import get_logger
from admissions_rag.models import (
    CacheEntry,
    ContextSnapshot,
    Document,
    Exchange,
    SearchResult,
    utcnow,
)
from admissions_rag.text import extract_keywords, jaccard, tokenize

Clock = Callable[[], datetime]

SNAPSHOT_CHARS = 150
EXCHANGE_KEYWORDS = 10
CACHE_KEY_TOKENS = 5
RELEVANCE_THRESHOLD = 0.1


def cache_key(text: str) -> str:
    """Normalized cache key: the first five tokens joined by underscores."""

    return "_".join(tokenize(text)[:CACHE_KEY_TOKENS])


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def _snapshot(result: SearchResult | Document) -> ContextSnapshot:
    if isinstance(result, SearchResult):
        document, score = result.document, result.score
    else:
        document, score = result, None
    content = document.content
    if len(content) > SNAPSHOT_CHARS:
        content = content[:SNAPSHOT_CHARS] + "..."
    return ContextSnapshot(content=content, score=score, type=document.type.value)


@dataclass(frozen=True)
class MemoryConfig:
    """Limits applied to every session."""

    max_history: int = 20
    cache_ttl_seconds: float = 1800.0
    max_sessions: int = 1000
    session_idle_ttl_seconds: float = 86400.0


class ConversationMemory:
    """Bounded exchange history plus a short-lived response cache for one session."""

    def __init__(
        self,
        *,
        max_history: int = 20,
        cache_ttl_seconds: float = 1800.0,
        clock: Clock = utcnow,
    ) -> None:
        self._max_history = max(1, max_history)
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self._clock = clock
        self._history: list[Exchange] = []
        self._cache: dict[str, CacheEntry] = {}

    @property
    def history(self) -> tuple[Exchange, ...]:
        return tuple(self._history)

    def add_exchange(
        self,
        user_text: str,
        assistant_text: str,
        retrieved: Sequence[SearchResult | Document] = (),
    ) -> Exchange:
        now = self._clock()
        exchange = Exchange(
            timestamp=now,
            user_text=user_text,
            assistant_text=assistant_text,
            context_snapshot=tuple(_snapshot(item) for item in retrieved),
            token_estimate=estimate_tokens(user_text + assistant_text),
            keywords=tuple(extract_keywords(f"{user_text} {assistant_text}", EXCHANGE_KEYWORDS)),
        )
        self._history.append(exchange)
        overflow = len(self._history) - self._max_history
        if overflow > 0:
            del self._history[:overflow]

        key = cache_key(user_text)
        if key:
            documents = tuple(item.document if isinstance(item, SearchResult) else item for item in retrieved)
            self._cache[key] = CacheEntry(response=assistant_text, context=documents, timestamp=now)
        return exchange

    def get_relevant_history(self, query: str, max_exchanges: int = 5) -> list[Exchange]:
        """Past exchanges whose keywords overlap the query, most relevant first."""

        if max_exchanges <= 0 or not self._history:
            return []
        query_tokens = set(tokenize(query))
        scored: list[tuple[float, Exchange]] = []
        for exchange in self._history:
            relevance = jaccard(query_tokens, {keyword.word for keyword in exchange.keywords})
            if relevance > RELEVANCE_THRESHOLD:
                scored.append((relevance, exchange))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [exchange for _, exchange in scored[:max_exchanges]]

    def get_cached_response(self, query: str) -> CacheEntry | None:
        key = cache_key(query)
        # queries made only of short tokens have no key and are never cached
        entry = self._cache.get(key) if key else None
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self._cache_ttl:
            return None
        return entry

    def clear(self) -> None:
        self._history.clear()
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "total_exchanges": len(self._history),
            "total_tokens": sum(exchange.token_estimate for exchange in self._history),
            "cache_size": len(self._cache),
            "oldest_exchange": self._history[0].timestamp.isoformat() if self._history else None,
            "newest_exchange": self._history[-1].timestamp.isoformat() if self._history else None,
        }


class MemoryService:
    """Session store: lazily created memories with idle expiry and an LRU cap."""

    _logger = get_logger("memory")

    def __init__(self, config: MemoryConfig | None = None, *, clock: Clock = utcnow) -> None:
        self._config = config or MemoryConfig()
        self._clock = clock
        self._sessions: OrderedDict[str, ConversationMemory] = OrderedDict()
        self._last_seen: dict[str, datetime] = {}

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> ConversationMemory:
        self._evict_idle()
        memory = self._sessions.get(session_id)
        if memory is None:
            memory = ConversationMemory(
                max_history=self._config.max_history,
                cache_ttl_seconds=self._config.cache_ttl_seconds,
                clock=self._clock,
            )
            self._sessions[session_id] = memory
            self._evict_overflow()
        else:
            self._sessions.move_to_end(session_id)
        self._last_seen[session_id] = self._clock()
        return memory

    def peek(self, session_id: str) -> ConversationMemory | None:
        return self._sessions.get(session_id)

    def add_exchange(
        self,
        session_id: str,
        user_text: str,
        assistant_text: str,
        retrieved: Sequence[SearchResult | Document] = (),
    ) -> Exchange:
        return self.get(session_id).add_exchange(user_text, assistant_text, retrieved)

    def get_relevant_history(self, session_id: str, query: str, max_exchanges: int = 5) -> list[Exchange]:
        memory = self.peek(session_id)
        if memory is None:
            return []
        return memory.get_relevant_history(query, max_exchanges)

    def get_cached_response(self, session_id: str, query: str) -> CacheEntry | None:
        memory = self.peek(session_id)
        if memory is None:
            return None
        return memory.get_cached_response(query)

    def clear(self, session_id: str) -> bool:
        memory = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if memory is None:
            return False
        memory.clear()
        self._logger.info("memory.cleared", session_id=session_id)
        return True

    def stats(self) -> dict[str, Any]:
        return {
            "session_count": len(self._sessions),
            "total_exchanges": sum(len(memory.history) for memory in self._sessions.values()),
            "total_tokens": sum(
                exchange.token_estimate for memory in self._sessions.values() for exchange in memory.history
            ),
            "cache_size": sum(memory.stats()["cache_size"] for memory in self._sessions.values()),
        }

    def _evict_idle(self) -> None:
        cutoff = self._clock() - timedelta(seconds=self._config.session_idle_ttl_seconds)
        expired = [session_id for session_id, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if expired:
            self._logger.info("memory.sessions_expired", count=len(expired))

    def _evict_overflow(self) -> None:
        while len(self._sessions) > max(1, self._config.max_sessions):
            session_id, _ = self._sessions.popitem(last=False)
            self._last_seen.pop(session_id, None)
            self._logger.info("memory.session_evicted", session_id=session_id)


__all__ = [
    "ConversationMemory",
    "MemoryConfig",
    "MemoryService",
    "cache_key",
    "estimate_tokens",
]
