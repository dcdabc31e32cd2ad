from typing import Optional

from audience_api.generation.base import Generator
from audience_api.generation.llm_generator import LLMGenerator

_generator: Optional[Generator] = None


def get_generator() -> Generator:
    global _generator
    if _generator is None:
        _generator = LLMGenerator()
    return _generator
