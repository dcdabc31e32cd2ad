import operator
from typing import TypedDict, Annotated, Optional, Dict, Any, List

from audience_api.registry import Stage


class ContentAgentState(TypedDict):
    stage: Stage
    scope: Dict[str, str]
    context: Dict[str, Any]
    messages: Annotated[List[Any], operator.add]
    errors: Annotated[List[str], operator.add]
    # Pipeline intermediates
    prompt_inputs: Optional[Dict[str, str]]
    raw_items: Optional[List[Any]]
    items: Optional[List[Dict[str, Any]]]
    dropped: int
