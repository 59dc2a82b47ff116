from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Union

if TYPE_CHECKING:
    from restinfront.core.classes import FieldError


class Association(str, Enum):
    BELONGS_TO = "BelongsTo"
    HAS_ONE = "HasOne"
    HAS_MANY = "HasMany"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def has_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class ValidationErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NOT_VALID = "NOT_VALID"


# A field maps to a leaf FieldError, to the error map of a single related
# instance, or to {index: error map} for a HasMany relation.
ErrorMap = Dict[str, Union["FieldError", "ErrorMap", Dict[int, "ErrorMap"]]]

DefaultValue = Callable[[Any], Any]
FieldPredicate = Callable[[Any, Any], bool]
