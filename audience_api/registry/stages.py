"""Static stage table of the content pipeline.

Graph topology::

    segments → jobs → preferences → difficulties → triggers → pains → pains-ranking
    pains-ranking → canvas → canvas-extended → strategy-personalized
    pains-ranking → ugc-profiles
    canvas → strategy-ads
    segments → strategy-summary → strategy-global
    strategy-summary → strategy-personalized
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from audience_api.registry.payloads import (
    EMPTY_LABEL,
    AdConceptPayload,
    CanvasExtendedPayload,
    CanvasPayload,
    DifficultyPayload,
    JobPayload,
    PainPayload,
    PainRankingPayload,
    PreferencePayload,
    SegmentPayload,
    StagePayload,
    StrategyPayload,
    TriggerPayload,
    UgcProfilePayload,
)
from audience_api.registry.scope import ScopeShape
from audience_api.shared.exceptions import NotFoundError, RegistryError


class StageId(str, Enum):
    SEGMENTS = "segments"
    JOBS = "jobs"
    PREFERENCES = "preferences"
    DIFFICULTIES = "difficulties"
    TRIGGERS = "triggers"
    PAINS = "pains"
    PAINS_RANKING = "pains-ranking"
    CANVAS = "canvas"
    CANVAS_EXTENDED = "canvas-extended"
    STRATEGY_SUMMARY = "strategy-summary"
    STRATEGY_PERSONALIZED = "strategy-personalized"
    STRATEGY_GLOBAL = "strategy-global"
    STRATEGY_ADS = "strategy-ads"
    UGC_PROFILES = "ugc-profiles"


class InsertMode(str, Enum):
    REPLACE = "replace"  # a generation pass supersedes the scope's whole draft set
    AUGMENT = "augment"  # upsert by ordinal slot, other slots are kept


class Stage(BaseModel):
    id: StageId
    title: str
    description: str
    draft_store: str
    approved_store: str
    scope_shape: ScopeShape
    upstream: Tuple[StageId, ...] = ()
    insert_mode: InsertMode = InsertMode.REPLACE
    ranking_flag: Optional[str] = None
    payload_model: Type[StagePayload]

    model_config = ConfigDict(frozen=True)

    @property
    def is_ranking(self) -> bool:
        return self.ranking_flag is not None


STAGES: Tuple[Stage, ...] = (
    Stage(
        id=StageId.SEGMENTS,
        title="Segments",
        description="Audience segments of the brand",
        draft_store="segments_drafts",
        approved_store="segments_initial",
        scope_shape=ScopeShape.PROJECT,
        payload_model=SegmentPayload,
    ),
    Stage(
        id=StageId.JOBS,
        title="Jobs to be done",
        description="Jobs the segment hires the product for",
        draft_store="jobs_drafts",
        approved_store="jobs",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.SEGMENTS,),
        payload_model=JobPayload,
    ),
    Stage(
        id=StageId.PREFERENCES,
        title="Preferences",
        description="Preferences and expectations of the segment",
        draft_store="preferences_drafts",
        approved_store="preferences",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.JOBS,),
        payload_model=PreferencePayload,
    ),
    Stage(
        id=StageId.DIFFICULTIES,
        title="Difficulties",
        description="Obstacles the segment runs into",
        draft_store="difficulties_drafts",
        approved_store="difficulties",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.PREFERENCES,),
        payload_model=DifficultyPayload,
    ),
    Stage(
        id=StageId.TRIGGERS,
        title="Triggers",
        description="Buying signals and purchase motivations",
        draft_store="triggers_drafts",
        approved_store="triggers",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.DIFFICULTIES,),
        payload_model=TriggerPayload,
    ),
    Stage(
        id=StageId.PAINS,
        title="Pains",
        description="Pain points of the segment",
        draft_store="pains_drafts",
        approved_store="pains_initial",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.TRIGGERS,),
        payload_model=PainPayload,
    ),
    Stage(
        id=StageId.PAINS_RANKING,
        title="Pains ranking",
        description="Pain prioritization and TOP pain selection",
        draft_store="pains_ranking_drafts",
        approved_store="pains_ranking",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.PAINS,),
        ranking_flag="is_top_pain",
        payload_model=PainRankingPayload,
    ),
    Stage(
        id=StageId.CANVAS,
        title="Pain canvas",
        description="Value proposition canvas per TOP pain",
        draft_store="canvas_drafts",
        approved_store="canvas",
        scope_shape=ScopeShape.PAIN,
        upstream=(StageId.PAINS_RANKING,),
        insert_mode=InsertMode.AUGMENT,
        payload_model=CanvasPayload,
    ),
    Stage(
        id=StageId.CANVAS_EXTENDED,
        title="Extended canvas",
        description="Customer journey, emotional map and messaging framework per pain",
        draft_store="canvas_extended_drafts",
        approved_store="canvas_extended",
        scope_shape=ScopeShape.PAIN,
        upstream=(StageId.CANVAS,),
        insert_mode=InsertMode.AUGMENT,
        payload_model=CanvasExtendedPayload,
    ),
    Stage(
        id=StageId.STRATEGY_SUMMARY,
        title="Strategy summary",
        description="Project-wide summary of the research",
        draft_store="strategy_summary_drafts",
        approved_store="strategy_summary",
        scope_shape=ScopeShape.PROJECT,
        upstream=(StageId.SEGMENTS,),
        payload_model=StrategyPayload,
    ),
    Stage(
        id=StageId.STRATEGY_PERSONALIZED,
        title="Personalized strategy",
        description="Strategy for one segment and TOP pain",
        draft_store="strategy_personalized_drafts",
        approved_store="strategy_personalized",
        scope_shape=ScopeShape.PAIN,
        upstream=(StageId.CANVAS_EXTENDED, StageId.STRATEGY_SUMMARY),
        insert_mode=InsertMode.AUGMENT,
        payload_model=StrategyPayload,
    ),
    Stage(
        id=StageId.STRATEGY_GLOBAL,
        title="Global strategy",
        description="Brand-level positioning across segments",
        draft_store="strategy_global_drafts",
        approved_store="strategy_global",
        scope_shape=ScopeShape.PROJECT,
        upstream=(StageId.STRATEGY_SUMMARY,),
        payload_model=StrategyPayload,
    ),
    Stage(
        id=StageId.STRATEGY_ADS,
        title="Ads strategy",
        description="Ad concepts for one segment and TOP pain",
        draft_store="strategy_ads_drafts",
        approved_store="strategy_ads",
        scope_shape=ScopeShape.PAIN,
        upstream=(StageId.CANVAS,),
        insert_mode=InsertMode.AUGMENT,
        payload_model=AdConceptPayload,
    ),
    Stage(
        id=StageId.UGC_PROFILES,
        title="UGC creator profiles",
        description="Creator profiles matching the segment's TOP pains",
        draft_store="ugc_creator_profiles_drafts",
        approved_store="ugc_creator_profiles",
        scope_shape=ScopeShape.SEGMENT,
        upstream=(StageId.PAINS_RANKING,),
        insert_mode=InsertMode.AUGMENT,
        payload_model=UgcProfilePayload,
    ),
)

# Stage whose approved, flagged records enumerate the pains of a segment
PAIN_SOURCE_STAGE = StageId.PAINS_RANKING
PAIN_ID_KEY = "pain_id"


def validate_registry(stages: Tuple[Stage, ...]) -> List[StageId]:
    """Check the stage table and return its topological order.

    Raises ``RegistryError`` on unknown references, cycles, upstreams with a
    finer scope than their dependent, or duplicated store ids.
    """
    by_id: Dict[StageId, Stage] = {}
    for stage in stages:
        if stage.id in by_id:
            raise RegistryError(f"Stage {stage.id.value!r} is declared twice")
        by_id[stage.id] = stage

    stores = [s.draft_store for s in stages] + [s.approved_store for s in stages]
    duplicated = {name for name in stores if stores.count(name) > 1}
    if duplicated:
        raise RegistryError(f"Store ids are shared between stages: {sorted(duplicated)}")

    for stage in stages:
        for up_id in stage.upstream:
            upstream = by_id.get(up_id)
            if upstream is None:
                raise RegistryError(f"Stage {stage.id.value!r} depends on unknown stage {up_id!r}")
            if upstream.scope_shape.rank > stage.scope_shape.rank:
                raise RegistryError(
                    f"Stage {stage.id.value!r} ({stage.scope_shape.value}) cannot depend on "
                    f"{up_id.value!r} ({upstream.scope_shape.value}): upstream scope is finer"
                )

    visited: set = set()
    in_stack: set = set()
    order: List[StageId] = []

    def dfs(sid: StageId) -> None:
        visited.add(sid)
        in_stack.add(sid)
        for dep in by_id[sid].upstream:
            if dep in in_stack:
                raise RegistryError(f"Circular dependency detected at stage {dep.value!r}")
            if dep not in visited:
                dfs(dep)
        in_stack.discard(sid)
        order.append(sid)

    for stage in stages:
        if stage.id not in visited:
            dfs(stage.id)

    return order


_ORDER = validate_registry(STAGES)
_BY_ID: Dict[StageId, Stage] = {s.id: s for s in STAGES}


def stage_of(stage_id) -> Stage:
    if isinstance(stage_id, Stage):
        return stage_id
    try:
        return _BY_ID[StageId(stage_id)]
    except (ValueError, KeyError):
        raise NotFoundError(f"Unknown stage {stage_id!r}")


def upstream_of(stage_id) -> List[StageId]:
    return list(stage_of(stage_id).upstream)


def downstream_of(stage_id) -> List[StageId]:
    """Every stage depending on ``stage_id`` directly or transitively, in pipeline order."""
    root = stage_of(stage_id).id
    found = {root}
    for sid in _ORDER:
        if any(dep in found for dep in _BY_ID[sid].upstream):
            found.add(sid)
    found.discard(root)
    return [sid for sid in _ORDER if sid in found]


def ordered_stages() -> List[Stage]:
    return [_BY_ID[sid] for sid in _ORDER]


def all_stages() -> Tuple[Stage, ...]:
    return STAGES


def payload_model_for(stage_id) -> Type[StagePayload]:
    return stage_of(stage_id).payload_model


def display_label(stage_id, payload: dict) -> str:
    """Label of a stored payload, or the empty label if it no longer validates."""
    try:
        return payload_model_for(stage_id).model_validate(payload).display_label()
    except PydanticValidationError:
        return EMPTY_LABEL


def stage_position(stage_id) -> int:
    """Index of the stage in pipeline order, -1 for an unknown id."""
    try:
        return _ORDER.index(stage_of(stage_id).id)
    except NotFoundError:
        return -1


def next_stage(stage_id) -> Optional[StageId]:
    position = stage_position(stage_id)
    if position < 0 or position + 1 >= len(_ORDER):
        return None
    return _ORDER[position + 1]
