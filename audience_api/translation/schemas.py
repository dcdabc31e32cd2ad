from typing import Any, List, Optional

from pydantic import BaseModel, Field


class TranslationResult(BaseModel):
    content: Any
    language: str
    translated: bool = True
    cached: bool = False
    unavailable: bool = Field(False, description="Provider failed or timed out; content is the original")
    error: Optional[str] = None


class TranslateRequest(BaseModel):
    content: Any
    target_language: str
    scope_id: Optional[str] = Field(None, description="Cache partition, defaults to the project id")
    keys: Optional[List[str]] = Field(None, description="Translate only these top-level keys of a dict")


class TranslateResponse(BaseModel):
    language: str
    native_language: str
    result: Optional[TranslationResult] = Field(
        None, description="Null when the target is the native language: show the original"
    )
