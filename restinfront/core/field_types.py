"""
Field types.

A field type is any object providing::

    default_value                       # a value, or a callable (optionally taking the primary key)
    is_blank(value) -> bool
    is_valid(value) -> bool             # only asked for non-blank values
    before_build(value, options) -> value
    before_serialize(value, options) -> value
    association                         # None, or an Association tag

``FieldType`` implements the permissive defaults; the scalar types below only
cover common cases, applications are expected to bring their own business rules.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Type, Union

from restinfront.core.types import Association


class FieldType:
    association: Optional[Association] = None
    default_value: Any = None

    def is_blank(self, value: Any) -> bool:
        return value is None or value == ""

    def is_valid(self, value: Any) -> bool:
        return True

    def before_build(self, value: Any, options: Dict[str, Any]) -> Any:
        return value

    def before_serialize(self, value: Any, options: Dict[str, Any]) -> Any:
        return value

    def __repr__(self):
        return f"{type(self).__name__}()"


class AnyType(FieldType):
    pass


class StringType(FieldType):
    default_value = ""

    def is_blank(self, value):
        return value is None or (isinstance(value, str) and value.strip() == "")

    def is_valid(self, value):
        return isinstance(value, str)


class NumberType(FieldType):
    def is_valid(self, value):
        return isinstance(value, (int, float)) and not isinstance(value, bool)


class BooleanType(FieldType):
    default_value = False

    def is_blank(self, value):
        return value is None

    def is_valid(self, value):
        return isinstance(value, bool)


class DateTimeType(FieldType):
    """Datetimes travel as ISO-8601 strings."""

    def is_blank(self, value):
        return value is None or value == ""

    def is_valid(self, value):
        return isinstance(value, datetime)

    def before_build(self, value, options):
        if isinstance(value, str) and value:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                # Left as-is, is_valid reports it
                return value
        return value

    def before_serialize(self, value, options):
        if isinstance(value, datetime):
            return value.isoformat()
        return value


class JSONType(FieldType):
    def is_blank(self, value):
        return value is None or value in ("", {}, [])


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------


class AssociationType(FieldType):
    """
    Base of the association types. ``model`` is a model class or the name it
    is registered under, resolved on first use.
    """

    def __init__(self, model: Union[str, Type]):
        self._model = model

    @property
    def model(self) -> Type:
        if isinstance(self._model, str):
            from restinfront.core.config import Registry

            self._model = Registry.get(self._model)
        return self._model

    def _build(self, value: Any, options: Dict[str, Any]):
        if value is None or isinstance(value, self.model):
            return value
        return self.model(value, is_new=options.get("is_new", True))

    def before_build(self, value, options):
        return self._build(value, options)

    def before_serialize(self, value, options):
        if value is None:
            return None
        return value.before_serialize(remove_invalid=options.get("remove_invalid", False))

    def __repr__(self):
        name = self._model if isinstance(self._model, str) else self._model.__name__
        return f"{type(self).__name__}({name!r})"


class BelongsTo(AssociationType):
    association = Association.BELONGS_TO

    def is_blank(self, value):
        return value is None

    def is_valid(self, value):
        return isinstance(value, self.model) and not value.is_collection


class HasOne(AssociationType):
    """
    One related instance owned by this one. With ``foreign_key`` the default
    related instance is built referencing the owner primary key.
    """

    association = Association.HAS_ONE

    def __init__(self, model: Union[str, Type], foreign_key: Optional[str] = None):
        super().__init__(model)
        self.foreign_key = foreign_key

    def default_value(self, primary_key):
        if self.foreign_key is None:
            return None
        return {self.foreign_key: primary_key}

    def is_blank(self, value):
        return value is None

    def is_valid(self, value):
        return isinstance(value, self.model) and not value.is_collection


class HasMany(AssociationType):
    association = Association.HAS_MANY

    def default_value(self):
        return []

    def is_blank(self, value):
        return value is None or len(value) == 0

    def is_valid(self, value):
        return isinstance(value, self.model) and value.is_collection
