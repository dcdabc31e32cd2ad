from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class OutcomeStatus(str, Enum):
    GENERATED = "generated"
    APPROVED = "approved"
    SKIPPED = "skipped"
    BLOCKED = "blocked"
    FAILED = "failed"


class BatchOutcome(BaseModel):
    """Result of one scope inside a batch loop."""
    scope: Dict[str, str]
    status: OutcomeStatus
    count: int = 0
    message: Optional[str] = None
