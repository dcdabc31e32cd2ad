"""Per-stage payload variants.

Each stage stores its content as a JSON object. The exact shape belongs to the
prompts, so the models only pin down the fields the pipeline reads and allow
everything else through. Every variant resolves its own display label.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Shown wherever a label field is missing or blank
EMPTY_LABEL = "-"


class StagePayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    ordinal: Optional[int] = Field(None, ge=0, description="Slot index supplied by the generator")

    def display_label(self) -> str:
        return EMPTY_LABEL

    @staticmethod
    def _label(value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return EMPTY_LABEL
        return str(value).strip()


class SegmentPayload(StagePayload):
    name: str
    description: Optional[str] = None
    sociodemographics: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.name)


class JobPayload(StagePayload):
    job: str
    description: Optional[str] = None
    why_matters: Optional[str] = None
    how_helps: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.job)


class PreferencePayload(StagePayload):
    name: str
    description: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.name)


class DifficultyPayload(StagePayload):
    name: str
    description: Optional[str] = None
    severity: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.name)


class TriggerPayload(StagePayload):
    """A buying signal: the moment a customer becomes ready to act."""

    signal: str
    description: Optional[str] = None
    psychological_basis: Optional[str] = None
    trigger_moment: Optional[str] = None
    messaging_angle: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.signal)


class PainPayload(StagePayload):
    name: str
    description: Optional[str] = None
    trigger: Optional[str] = None
    example: Optional[str] = None
    impact_score: Optional[int] = Field(None, ge=0, le=10)

    def display_label(self) -> str:
        return self._label(self.name)


class PainRankingPayload(StagePayload):
    pain_id: Optional[str] = Field(None, description="Approved pain this ranking entry refers to")
    name: str
    impact_score: Optional[int] = Field(None, ge=0, le=10)
    reasoning: Optional[str] = None
    is_top_pain: bool = False

    def display_label(self) -> str:
        return self._label(self.name)


class CanvasPayload(StagePayload):
    pain_name: str
    emotional_aspects: List[str] = []
    practical_aspects: List[str] = []
    social_aspects: List[str] = []
    value_proposition: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.pain_name)


class CanvasExtendedPayload(StagePayload):
    pain_name: str
    customer_journey: Optional[Dict[str, Any]] = None
    emotional_map: Optional[Dict[str, Any]] = None
    narrative_angles: List[Any] = []
    messaging_framework: Optional[Dict[str, Any]] = None
    voice_and_tone: Optional[Dict[str, Any]] = None

    def display_label(self) -> str:
        return self._label(self.pain_name)


class StrategyPayload(StagePayload):
    title: str
    summary: Optional[str] = None
    positioning: Optional[str] = None
    key_messages: List[str] = []
    channels: List[str] = []

    def display_label(self) -> str:
        return self._label(self.title)


class AdConceptPayload(StagePayload):
    headline: str
    body: Optional[str] = None
    platform: Optional[str] = None
    call_to_action: Optional[str] = None

    def display_label(self) -> str:
        return self._label(self.headline)


class UgcProfilePayload(StagePayload):
    creator_type: str
    description: Optional[str] = None
    source_pain_id: Optional[str] = None
    content_formats: List[str] = []

    def display_label(self) -> str:
        return self._label(self.creator_type)
