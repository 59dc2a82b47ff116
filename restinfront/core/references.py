"""
References accepted by the collection lookups (find, exists, remove, toggle,
is_last): a primary key value, an object carrying the primary key, or a
predicate. Each is resolved once to a predicate over collection items.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

Predicate = Callable[[Any], bool]


def primary_key_of(obj: Any, primary_key: Optional[str]) -> Any:
    if primary_key is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(primary_key)
    return getattr(obj, primary_key, None)


@dataclass(frozen=True)
class ByKey:
    value: Any

    def to_predicate(self, primary_key: Optional[str]) -> Predicate:
        return lambda item: primary_key_of(item, primary_key) == self.value


@dataclass(frozen=True)
class ByObject:
    obj: Any

    def to_predicate(self, primary_key: Optional[str]) -> Predicate:
        value = primary_key_of(self.obj, primary_key)
        return lambda item: primary_key_of(item, primary_key) == value


@dataclass(frozen=True)
class ByPredicate:
    predicate: Predicate

    def to_predicate(self, primary_key: Optional[str]) -> Predicate:
        return self.predicate


def as_reference(ref: Any):
    # Model instances are objects, never predicates
    if isinstance(ref, (ByKey, ByObject, ByPredicate)):
        return ref
    if isinstance(ref, Mapping) or hasattr(ref, "_restinfront"):
        return ByObject(ref)
    if callable(ref):
        return ByPredicate(ref)
    return ByKey(ref)


def resolve_reference(ref: Any, primary_key: Optional[str]) -> Predicate:
    return as_reference(ref).to_predicate(primary_key)
