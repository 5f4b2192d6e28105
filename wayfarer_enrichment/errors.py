"""
Error taxonomy for the content enrichment pipeline.

StoreUnavailable is fatal for a run. Generation and persist errors are
per-entity: the orchestrator records them and moves on to the next entity.
"""

from typing import Optional


class EnrichmentError(Exception):
    """Base class for every error raised by the enrichment pipeline."""

    kind = "error"


class StoreUnavailable(EnrichmentError):
    """The entity store cannot be reached; nothing can be selected or persisted."""

    kind = "store_unavailable"


class GenerationError(EnrichmentError):
    """The generation provider did not produce usable content."""

    kind = "generation_error"
    retryable = True


class RateLimited(GenerationError):
    kind = "rate_limited"


class ProviderError(GenerationError):
    kind = "provider_error"


class GenerationTimeout(GenerationError):
    kind = "timeout"


class MalformedOutput(GenerationError):
    """The provider answered, but not with a JSON object."""

    kind = "malformed_output"
    retryable = False

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class PersistError(EnrichmentError):
    kind = "persist_error"


class IncompleteContent(PersistError):
    """Generated content is missing required fields or breaks their bounds."""

    kind = "incomplete_content"

    def __init__(self, entity_name: str, problems):
        self.entity_name = entity_name
        self.problems = list(problems)
        super().__init__(f"{entity_name}: {'; '.join(self.problems)}")


class ConstraintViolation(PersistError):
    kind = "constraint_violation"


class GenerationCancelled(GenerationError):
    """The run was cancelled while a request was waiting to be retried."""

    kind = "cancelled"
    retryable = False
