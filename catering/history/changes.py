"""
Field-level change detection between two versions of an entity.

Fields are compared one by one over the model's declared fields (plus any
extra keys carried in the document), so the result does not depend on
serialization order. Collections of sub-items are reported as a count change
rather than element by element.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

from ..models import ChangeDetail

Entity = Union[BaseModel, Mapping[str, Any], None]

# document key -> noun used in summaries
COLLECTION_FIELDS = {
    "menuItems": "items",
    "menu_items": "items",
}

MAX_VALUE_LENGTH = 40
_MISSING = object()


def _fields(entity: Entity) -> Dict[str, Any]:
    """Document-keyed field values of a model or mapping"""
    if entity is None:
        return {}
    if isinstance(entity, BaseModel):
        values = {}
        for name, info in type(entity).model_fields.items():
            values[info.alias or name] = getattr(entity, name)
        values.update(entity.model_extra or {})
        return values
    return dict(entity)


def _plain(value: Any) -> Any:
    """JSON-ready copy of a value for storing in a ChangeDetail"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _is_empty(value: Any) -> bool:
    return value is _MISSING or value is None


def _ordered_keys(old: Dict[str, Any], new: Dict[str, Any]) -> Iterable[str]:
    return list(dict.fromkeys([*old.keys(), *new.keys()]))


def diff(old_entity: Entity, new_entity: Entity) -> List[ChangeDetail]:
    """
    Compare two versions of an entity.

    Args:
        old_entity: Version before the change (model or mapping)
        new_entity: Version after the change

    Returns:
        One ChangeDetail per differing field, in field order
    """
    old = _fields(old_entity)
    new = _fields(new_entity)
    changes = []

    for key in _ordered_keys(old, new):
        old_value = old.get(key, _MISSING)
        new_value = new.get(key, _MISSING)

        if _is_empty(old_value) and _is_empty(new_value):
            continue
        if _is_empty(old_value):
            changes.append(_detail(key, None, new_value, "added"))
        elif _is_empty(new_value):
            changes.append(_detail(key, old_value, None, "removed"))
        elif _plain(old_value) != _plain(new_value):
            changes.append(_detail(key, old_value, new_value, "modified"))

    return changes


def _detail(key: str, old_value: Any, new_value: Any, change_type: str) -> ChangeDetail:
    if key in COLLECTION_FIELDS:
        old_value = len(old_value) if old_value is not None else None
        new_value = len(new_value) if new_value is not None else None
    else:
        old_value = _plain(old_value)
        new_value = _plain(new_value)
    return ChangeDetail(field=key, old_value=old_value, new_value=new_value, change_type=change_type)


def _short(value: Any) -> str:
    text = str(value)
    if len(text) > MAX_VALUE_LENGTH:
        return text[:MAX_VALUE_LENGTH - 3] + "..."
    return text


def _clause(change: ChangeDetail) -> str:
    noun = COLLECTION_FIELDS.get(change.field)
    if noun:
        old_count = change.old_value or 0
        new_count = change.new_value or 0
        delta = new_count - old_count
        if delta > 0:
            return f"{delta} {noun} added ({old_count} → {new_count})"
        if delta < 0:
            return f"{-delta} {noun} removed ({old_count} → {new_count})"
        return f"{noun} modified"

    if change.change_type == "added":
        return f"{change.field} added"
    if change.change_type == "removed":
        return f"{change.field} removed"
    return f"{change.field}: {_short(change.old_value)} → {_short(change.new_value)}"


def summarize(action: str, changes: Optional[List[ChangeDetail]], name: str) -> str:
    """Human-readable one-liner for a backup entry"""
    if action == "create":
        return f'Created "{name}"'
    if action == "delete":
        return f'Deleted "{name}"'
    if not changes:
        return "No changes"
    return ", ".join(_clause(change) for change in changes)
