"""Conversation memory."""

from .service import ConversationMemory, MemoryConfig, MemoryService, cache_key

__all__ = ["ConversationMemory", "MemoryConfig", "MemoryService", "cache_key"]
