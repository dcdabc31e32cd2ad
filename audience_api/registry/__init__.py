from audience_api.registry.scope import Scope, ScopeShape
from audience_api.registry.stages import (
    InsertMode,
    PAIN_ID_KEY,
    PAIN_SOURCE_STAGE,
    Stage,
    StageId,
    all_stages,
    display_label,
    downstream_of,
    next_stage,
    ordered_stages,
    payload_model_for,
    stage_of,
    stage_position,
    upstream_of,
    validate_registry,
)
