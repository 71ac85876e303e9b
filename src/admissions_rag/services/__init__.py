"""Service layer orchestrations for the admissions assistant."""

from .generation import (
    AnthropicBackend,
    GenerationAttempt,
    GenerationBackend,
    GenerationConfig,
    OpenAICompatibleBackend,
    ProviderChain,
    TransformersBackend,
)
from .prompts import Language, PromptBuilder, PromptKind
from .query import QueryOrchestrator, build_orchestrator, rewrite_query
from .responder import GeneratedResponse, ResponseGenerator, compute_confidence
from .templates import APOLOGY, NO_INFORMATION, TemplateResponder

__all__ = [
    "APOLOGY",
    "AnthropicBackend",
    "GeneratedResponse",
    "GenerationAttempt",
    "GenerationBackend",
    "GenerationConfig",
    "Language",
    "NO_INFORMATION",
    "OpenAICompatibleBackend",
    "PromptBuilder",
    "PromptKind",
    "ProviderChain",
    "QueryOrchestrator",
    "ResponseGenerator",
    "TemplateResponder",
    "TransformersBackend",
    "build_orchestrator",
    "compute_confidence",
    "rewrite_query",
]
