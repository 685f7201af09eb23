"""
HotConf Decode-Merge.

Merges a parsed document into an existing, long-lived structure.
Requires Python 3.11+.
"""

import dataclasses
import typing
from collections.abc import Mapping, MutableMapping
from functools import lru_cache
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    PydanticSchemaGenerationError,
    PydanticUserError,
    TypeAdapter,
    ValidationError,
)

from utils.errors import ConfigDecodeError

_MISSING = object()
_ARBITRARY_TYPES = ConfigDict(arbitrary_types_allowed=True)


def _is_frozen(obj: Any) -> bool:
    if isinstance(obj, BaseModel):
        return bool(type(obj).model_config.get("frozen", False))
    return type(obj).__dataclass_params__.frozen


def is_mergeable(obj: Any) -> bool:
    """Check if values can be merged into ``obj`` in place."""
    if isinstance(obj, MutableMapping):
        return True
    if isinstance(obj, BaseModel) or (
        dataclasses.is_dataclass(obj) and not isinstance(obj, type)
    ):
        return not _is_frozen(obj)
    return False


def check_target(target: Any) -> None:
    """
    Ensure a decode target can receive merged documents.

    Raises:
        TypeError: If the target is not a mutable mapping, a non-frozen
            dataclass instance or a non-frozen pydantic model instance
    """
    if not is_mergeable(target):
        raise TypeError(
            "decode target must be a mutable mapping, dataclass instance or "
            f"pydantic model instance that is not frozen, got {type(target).__name__}"
        )


def _resolve_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references; fall back per field
        return {}


def _adapter(annotation: Any) -> TypeAdapter:
    try:
        return TypeAdapter(annotation)
    except PydanticSchemaGenerationError:
        pass
    try:
        # Plain classes such as handles or clients: accept instances only
        return TypeAdapter(annotation, config=_ARBITRARY_TYPES)
    except PydanticUserError:
        # Dataclasses and models embedding such classes refuse a config
        return TypeAdapter(Any)


@lru_cache(maxsize=None)
def _field_table(cls: type) -> dict[str, tuple[str, TypeAdapter]]:
    """
    Map document keys to attribute names and validators for a class.

    Pydantic fields are reachable by alias and by name; their ``Field``
    constraints are part of the validator.
    """
    table: dict[str, tuple[str, TypeAdapter]] = {}

    if issubclass(cls, BaseModel):
        for name, info in cls.model_fields.items():
            annotation = info.annotation if info.annotation is not None else Any
            if info.metadata:
                annotation = Annotated[(annotation, *info.metadata)]
            adapter = _adapter(annotation)
            table[name] = (name, adapter)
            if info.alias:
                table[info.alias] = (name, adapter)
        return table

    hints = _resolve_hints(cls)
    for field in dataclasses.fields(cls):
        hint = hints.get(field.name, Any if isinstance(field.type, str) else field.type)
        table[field.name] = (field.name, _adapter(hint))
    return table


def _is_section(obj: Any) -> bool:
    """Check if ``obj`` is a nested dataclass or model merged field by field."""
    return is_mergeable(obj) and not isinstance(obj, MutableMapping)


class MergePlan:
    """
    Validated updates for one target.

    Building a plan never touches the target; every value is checked
    first so a bad document leaves no partial writes. ``apply`` then
    writes the plan in place, recursing into nested containers so their
    identity is kept.
    """

    def __init__(self, target: Any, updates: dict[str, Any], prefix: str = "") -> None:
        self._target = target
        self._updates = updates
        self._prefix = prefix

    @classmethod
    def build(cls, target: Any, document: Mapping[str, Any], prefix: str = "") -> "MergePlan":
        """
        Plan the merge of ``document`` into ``target``.

        Args:
            target: Mergeable structure (see ``is_mergeable``)
            document: Parsed document mapping
            prefix: Dotted key path of ``target`` inside the root

        Returns:
            Plan ready to apply

        Raises:
            ConfigDecodeError: If a value does not fit its field type
        """
        try:
            return cls._plan(target, document, prefix)
        except RecursionError as e:
            raise ConfigDecodeError("document is nested too deeply to merge") from e

    @classmethod
    def _plan(cls, target: Any, document: Mapping[str, Any], prefix: str) -> "MergePlan":
        updates: dict[str, Any] = {}

        if isinstance(target, MutableMapping):
            for key, value in document.items():
                current = target.get(key, _MISSING)
                if isinstance(value, Mapping) and is_mergeable(current):
                    value = cls._plan(current, value, _join(prefix, key))
                updates[key] = value
            return cls(target, updates, prefix)

        table = _field_table(type(target))
        for key, value in document.items():
            entry = table.get(key)
            if entry is None:
                continue
            attr, adapter = entry
            key_path = _join(prefix, attr)

            current = getattr(target, attr, _MISSING)
            if isinstance(value, Mapping) and _is_section(current):
                updates[attr] = cls._plan(current, value, key_path)
                continue

            merged_mapping = isinstance(value, Mapping) and isinstance(current, MutableMapping)
            if merged_mapping:
                # Typed mapping fields are validated whole, then merged in place
                value = {**current, **value}

            try:
                validated = adapter.validate_python(value)
            except ValidationError as e:
                raise ConfigDecodeError(
                    f"invalid value for {key_path}: {e.errors()[0]['msg']}"
                ) from e

            if merged_mapping and isinstance(validated, Mapping):
                updates[attr] = cls._plan(current, validated, key_path)
            else:
                updates[attr] = validated

        return cls(target, updates, prefix)

    def apply(self) -> list[str]:
        """
        Write the planned values into the target.

        Returns:
            Dotted key paths whose value changed
        """
        changes: list[str] = []
        is_mapping = isinstance(self._target, MutableMapping)

        for key, update in self._updates.items():
            if isinstance(update, MergePlan):
                changes.extend(update.apply())
                continue

            if is_mapping:
                old = self._target.get(key, _MISSING)
                self._target[key] = update
            else:
                old = getattr(self._target, key, _MISSING)
                setattr(self._target, key, update)

            if old is _MISSING or old != update:
                changes.append(_join(self._prefix, key))

        return changes


def _join(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def merge_into(target: Any, document: Mapping[str, Any]) -> list[str]:
    """
    Merge a document into a target in place, all or nothing.

    Fields absent from the document keep their values; keys the target
    does not declare are ignored (mappings accept every key).

    Returns:
        Dotted key paths whose value changed

    Raises:
        ConfigDecodeError: If a value does not fit its field type
    """
    return MergePlan.build(target, document).apply()
