"""Node functions for the stage content pipeline.

Each node is an async function that receives ``ContentAgentState`` and
returns a partial state dict.
"""

import json
import logging
from typing import Dict, Any, List

from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError as PydanticValidationError

from audience_api.llm.factory import get_primary_llm
from audience_api.agents.content.prompts import GENERATION_SYSTEM_PROMPT, GENERATION_USER_PROMPT

logger = logging.getLogger(__name__)


def check_errors(state: Dict[str, Any]) -> str:
    """Return ``'end'`` if errors exist, ``'continue'`` otherwise."""
    if state.get("errors"):
        return "end"
    return "continue"


async def prepare_node(state: Dict[str, Any]) -> Dict[str, Any]:
    stage = state["stage"]
    context = state.get("context") or {}
    instructions = context.get("instructions") or ""
    return {
        "prompt_inputs": {
            "stage_title": stage.title,
            "stage_description": stage.description,
            "payload_schema": json.dumps(stage.payload_model.model_json_schema(), indent=2),
            "project": json.dumps(context.get("project", {}), indent=2, ensure_ascii=False),
            "scope": json.dumps(
                {k: v for k, v in context.items() if k in ("segment", "pain")},
                indent=2,
                ensure_ascii=False,
            ),
            "upstream": json.dumps(context.get("upstream", {}), indent=2, ensure_ascii=False),
            "instructions": f"Additional instructions: {instructions}" if instructions else "",
        },
    }


async def generate_node(state: Dict[str, Any]) -> Dict[str, Any]:
    llm = get_primary_llm()
    prompt = ChatPromptTemplate.from_messages([
        ("system", GENERATION_SYSTEM_PROMPT),
        ("user", GENERATION_USER_PROMPT),
    ])
    chain = prompt | llm | JsonOutputParser()

    try:
        result = await chain.ainvoke(state["prompt_inputs"])
    except Exception as e:
        logger.error("Generation of %s failed: %s", state["stage"].id.value, e)
        return {"errors": [f"Generation failed: {e}"]}

    if isinstance(result, dict):
        result = result.get("items", [])
    if not isinstance(result, list):
        return {"errors": [f"Expected a list of items, got {type(result).__name__}"]}
    return {"raw_items": result}


async def validate_node(state: Dict[str, Any]) -> Dict[str, Any]:
    model = state["stage"].payload_model
    items: List[Dict[str, Any]] = []
    dropped = 0
    for raw in state.get("raw_items") or []:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        try:
            items.append(model.model_validate(raw).model_dump(mode="json", exclude_unset=True))
        except PydanticValidationError as e:
            dropped += 1
            logger.warning("Dropping invalid %s item: %s", state["stage"].id.value, e.errors()[:3])

    if not items:
        return {"dropped": dropped, "errors": ["No valid items were generated"]}
    return {"items": items, "dropped": dropped}
