"""Exception hierarchy for the admissions assistant core."""

from __future__ import annotations


class AdmissionsRagError(RuntimeError):
    """Base class for errors raised by the assistant core."""


class InitializationError(AdmissionsRagError):
    """Raised when the embedding backend cannot be loaded."""


class NotInitializedError(AdmissionsRagError):
    """Raised when a query or load is attempted before `initialize()` succeeded."""


class KnowledgeBaseError(AdmissionsRagError):
    """Raised when the knowledge-base source cannot be read or parsed."""


class GenerationError(AdmissionsRagError):
    """Raised by generation backends when a completion cannot be produced."""
