from __future__ import annotations

from typing import Any, Dict, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..scanner.errors import InvalidUpdateError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _describe(exc: ValidationError, label: str) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or label
    return f"Invalid {label} update, {field}: {first.get('msg')}"


def update_fields(update_model: Type[BaseModel], updates: Union[BaseModel, Dict[str, Any]], label: str) -> Dict[str, Any]:
    """Fields explicitly set on a partial update, validated against ``update_model``."""
    if isinstance(updates, dict):
        try:
            updates = update_model.model_validate(updates)
        except ValidationError as exc:
            raise InvalidUpdateError(_describe(exc, label)) from exc
    return updates.model_dump(exclude_unset=True)


def merge_update(model: Type[ModelT], current: BaseModel, changes: Dict[str, Any], label: str, **pinned: Any) -> ModelT:
    """Apply ``changes`` over ``current`` and revalidate the whole record.

    An explicit ``null`` for a required field fails here rather than being
    written to the store.
    """
    try:
        return model.model_validate({**current.model_dump(), **changes, **pinned})
    except ValidationError as exc:
        raise InvalidUpdateError(_describe(exc, label)) from exc
