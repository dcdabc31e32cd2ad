import json
import logging
import re
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from audience_api.agents.content.agent import get_content_agent
from audience_api.agents.content.prompts import (
    FIELD_PROMPTS,
    FIELD_SYSTEM_PROMPT,
    FIELD_TYPES,
    FIELD_USER_PROMPT,
)
from audience_api.generation.base import Generator
from audience_api.llm.factory import get_secondary_llm
from audience_api.registry import Scope, Stage
from audience_api.shared.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

_QUOTES = re.compile(r"^[\"']|[\"']$")
_BOLD = re.compile(r"^\*\*|\*\*$")


def clean_field_value(text: str) -> str:
    """Strip surrounding quotes and bold markers the model likes to add."""
    value = text.strip()
    value = _QUOTES.sub("", value)
    value = _BOLD.sub("", value)
    return value.strip()


def field_prompt_for(stage: Optional[Stage], field_name: str) -> str:
    field_type = FIELD_TYPES.get(stage.id.value) if stage is not None else None
    if field_type:
        key = f"{field_type}_{field_name}".lower().replace(" ", "_")
        if key in FIELD_PROMPTS:
            return FIELD_PROMPTS[key]
    return FIELD_PROMPTS["default"]


class LLMGenerator(Generator):
    """Generator backed by the configured chat models."""

    async def generate(self, stage: Stage, scope: Scope, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        result = await get_content_agent().ainvoke({
            "stage": stage,
            "scope": scope.describe(),
            "context": context,
            "messages": [],
            "errors": [],
            "prompt_inputs": None,
            "raw_items": None,
            "items": None,
            "dropped": 0,
        })
        if result.get("errors"):
            raise ExternalServiceError(
                f"Generation of {stage.id.value} failed: {'; '.join(result['errors'])}",
                {"dropped": result.get("dropped", 0)},
            )
        if result.get("dropped"):
            logger.warning("Dropped %d invalid %s items", result["dropped"], stage.id.value)
        return result.get("items") or []

    async def regenerate_field(
        self,
        field_name: str,
        current_value: Any,
        context: str,
        stage: Optional[Stage] = None,
    ) -> Any:
        structured = isinstance(current_value, (list, dict))
        if current_value in (None, ""):
            current = "Generate fresh content."
        elif structured:
            current = (
                f"Current content to improve (JSON):\n{json.dumps(current_value, ensure_ascii=False)}\n"
                "Answer with JSON of the same shape."
            )
        else:
            current = f'Current content to improve: "{current_value}"'

        llm = get_secondary_llm()
        response = await llm.ainvoke([
            SystemMessage(content=FIELD_SYSTEM_PROMPT.format(context=context)),
            HumanMessage(content=FIELD_USER_PROMPT.format(
                task=field_prompt_for(stage, field_name),
                current=current,
            )),
        ])
        text = str(response.content)
        if structured:
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Regenerated %s is not valid JSON, storing as text", field_name)
        value = clean_field_value(text)
        if not value:
            raise ExternalServiceError(f"Empty value generated for field {field_name!r}")
        return value
