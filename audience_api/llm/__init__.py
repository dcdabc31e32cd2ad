from audience_api.llm.factory import (
    get_primary_llm,
    get_secondary_llm,
    get_translation_llm,
    clear_llm_cache,
)
