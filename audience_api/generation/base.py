from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from audience_api.registry import Scope, Stage


class Generator(ABC):
    """
    External content generator used by the pipeline.
    """

    @abstractmethod
    async def generate(self, stage: Stage, scope: Scope, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Produce the draft items of one stage for one scope.
        :param context: project brief, scope entities and the approved upstream payloads.
        :return: raw item dicts; an ``ordinal`` key, when present, picks the slot.
        """

    @abstractmethod
    async def regenerate_field(
        self,
        field_name: str,
        current_value: Any,
        context: str,
        stage: Optional[Stage] = None,
    ) -> Any:
        """Produce a new value for one field of a draft."""
