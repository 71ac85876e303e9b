"""Runtime configuration for the admissions assistant."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KNOWLEDGE_BASE = Path(__file__).parent / "data" / "departments.json"


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="admissions_rag_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"

    knowledge_base_path: Path = DEFAULT_KNOWLEDGE_BASE
    institution_name: str = "SOA University College"

    # Embeddings
    embedding_backend: Literal["hash", "huggingface"] = "hash"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    embedding_batch_size: int = 16
    embedding_device: str | None = None
    embedding_cache_folder: str | None = None

    # Retrieval
    max_results: int = 5
    enable_reranking: bool = True
    default_search_type: Literal["semantic", "keyword", "hybrid"] = "hybrid"

    # Conversation memory
    enable_memory: bool = True
    memory_max_history: int = 20
    memory_cache_ttl_seconds: int = 30 * 60
    max_sessions: int = 1000
    session_idle_ttl_seconds: int = 24 * 60 * 60

    # Generation
    enable_llm: bool = True
    llm_providers: tuple[str, ...] | str = ("groq", "openai", "anthropic")
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7
    generation_timeout_seconds: float = 30.0
    prompt_include_history: bool = True

    groq_api_key: str | None = None
    groq_model: str = "llama-3.1-8b-instant"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-haiku-20240307"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    local_generator_model: str = "Qwen/Qwen2.5-1.5B-Instruct"
    local_generator_device: str | None = None

    # Evaluation
    evaluation_min_recall: float = 0.5
    evaluation_min_mrr: float = 0.5

    # HTTP adapter
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_allow_origins: tuple[str, ...] = ()
    max_message_length: int = 2000

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def llm_providers_tuple(self) -> tuple[str, ...]:
        value = self.llm_providers
        if isinstance(value, str):
            return tuple(part.strip().lower() for part in value.split(",") if part.strip())
        return tuple(part.lower() for part in value)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override is not None:
        return Settings(**override)
    return _cached_settings()
