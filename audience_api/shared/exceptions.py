"""Error taxonomy shared by every pipeline service.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for errors surfaced to pipeline callers."""

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class NotFoundError(PipelineError):
    """Row, stage or scope does not exist. Not retried."""


class ValidationError(PipelineError):
    """An action's precondition is unmet (e.g. no top item selected)."""


class ConflictError(PipelineError):
    """Compare-and-swap on a draft version failed."""


class StageLockedError(ConflictError):
    """An upstream stage is not approved for the scope. ``detail`` names the blocking stage."""


class ExternalServiceError(PipelineError):
    """Generator or translation provider failed. Prior state is untouched."""


class TransientStoreError(PipelineError):
    """Store hiccup. The same idempotent operation is safe to retry."""


class RegistryError(RuntimeError):
    """Stage registry misconfiguration, raised at import time."""

