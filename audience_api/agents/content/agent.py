"""Stage content generator.

Graph topology::

    START → prepare → generate → validate → END
"""

from typing import Optional

from langgraph.graph import StateGraph, END

from audience_api.agents.state import ContentAgentState
from audience_api.agents.content.nodes import (
    prepare_node,
    generate_node,
    validate_node,
    check_errors,
)

_content_agent: Optional[object] = None


def create_content_agent():
    workflow = StateGraph(ContentAgentState)

    # Nodes
    workflow.add_node("prepare", prepare_node)
    workflow.add_node("generate", generate_node)
    workflow.add_node("validate", validate_node)

    # Edges
    workflow.set_entry_point("prepare")
    workflow.add_edge("prepare", "generate")
    workflow.add_conditional_edges("generate", check_errors, {
        "continue": "validate",
        "end": END,
    })
    workflow.add_edge("validate", END)

    return workflow.compile()


def get_content_agent():
    """Compiled graph, built on first use."""
    global _content_agent
    if _content_agent is None:
        _content_agent = create_content_agent()
    return _content_agent
