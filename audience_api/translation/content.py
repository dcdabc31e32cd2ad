"""Pure helpers over translatable content.

Content is any JSON value. Strings are addressed by their path of dict keys
and list indexes; rebuilding never mutates the input.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

PathKey = Union[str, int]
Path = Tuple[PathKey, ...]

# Identifiers, timestamps, scores and flags are never sent for translation
SKIP_KEYS = frozenset({
    "id",
    "project_id",
    "segment_id",
    "pain_id",
    "canvas_id",
    "user_id",
    "created_at",
    "updated_at",
    "approved_at",
    "version",
    "ordinal",
    "order_index",
    "impact_score",
    "is_top_pain",
    "pain_index",
    "segment_index",
})


def canonical_json(content: Any) -> str:
    return json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def fingerprint(content: Any) -> str:
    return hashlib.sha256(canonical_json(content).encode("utf-8")).hexdigest()


def cache_key(content_fingerprint: str, language: str, scope_id: str) -> str:
    raw = f"{content_fingerprint}|{language}|{scope_id}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def extract_strings(content: Any, path: Path = ()) -> List[Tuple[Path, str]]:
    if isinstance(content, str):
        return [(path, content)] if content.strip() else []
    found: List[Tuple[Path, str]] = []
    if isinstance(content, list):
        for index, item in enumerate(content):
            found.extend(extract_strings(item, path + (index,)))
    elif isinstance(content, dict):
        for key, value in content.items():
            if key in SKIP_KEYS:
                continue
            found.extend(extract_strings(value, path + (key,)))
    return found


def set_at_path(content: Any, path: Sequence[PathKey], value: Any) -> Any:
    """Return a copy of ``content`` with ``value`` at ``path``; containers on the path are copied."""
    if not path:
        return value
    head, rest = path[0], path[1:]
    if isinstance(content, list):
        copy = list(content)
        copy[head] = set_at_path(copy[head], rest, value)
        return copy
    copy = dict(content)
    copy[head] = set_at_path(copy.get(head), rest, value)
    return copy


def rebuild(content: Any, strings: Iterable[Tuple[Path, str]], translated: Sequence[str]) -> Any:
    result = content
    for (path, _), text in zip(strings, translated):
        result = set_at_path(result, path, text)
    return result


def merge_translated(original: Any, translated: Any) -> Any:
    """
    Overlay a translated subset onto the original entity.

    The result has exactly the original's keys: translated keys take the
    translated value, every other key keeps the original value object. Keys
    only present in the subset are ignored. Non-dict input yields the
    original. Neither argument is mutated.
    """
    if not isinstance(original, dict):
        return original
    if not isinstance(translated, dict):
        return dict(original)
    return {key: translated[key] if key in translated else value for key, value in original.items()}


def pick(entity: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    return {key: entity[key] for key in keys if key in entity}
