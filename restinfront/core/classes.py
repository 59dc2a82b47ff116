from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from restinfront.core.types import HttpMethod, ValidationErrorCode


def _noop(*args, **kwargs) -> None:
    return None


@dataclass(frozen=True)
class FieldConfig:
    """
    Compiled configuration of one schema field.

    Attributes:
        name: The field name
        type: The field type capability (see restinfront.core.field_types.FieldType)
        primary_key: Whether the field identifies the instance
        default_value: Called with the resolved primary key, returns the default
        allow_blank: Called with (value, data), True when a blank value is accepted
        is_valid: Custom validator called with (value, data)
        auto_checked: Whether the field takes part in error display before any validation pass
    """

    name: str
    type: Any
    primary_key: bool
    default_value: Callable[[Any], Any]
    allow_blank: Callable[[Any, Any], bool]
    is_valid: Callable[[Any, Any], bool]
    auto_checked: bool


@dataclass
class ValidatorEntry:
    checked: bool
    is_valid: Callable[[Any, Any], bool]


@dataclass
class FieldError:
    code: ValidationErrorCode
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        if self.code == ValidationErrorCode.NOT_FOUND:
            return {"error": self.code.value}
        return {"value": self.value, "error": self.code.value}


@dataclass
class OperationState:
    progressing: bool = False
    succeeded: bool = False
    failed: bool = False

    def reset(self, progressing: bool = False) -> None:
        self.progressing = progressing
        self.succeeded = False
        self.failed = False


@dataclass
class FetchStates:
    progressing: bool = False
    succeeded: bool = False
    succeeded_once: bool = False
    failed: bool = False
    get: OperationState = field(default_factory=OperationState)
    # Only item instances track save requests
    save: Optional[OperationState] = None


@dataclass
class FetchOptions:
    method: HttpMethod
    pathname: str = ""
    search_params: Optional[Dict[str, Any]] = None
    extend: bool = False

    def __post_init__(self):
        self.method = HttpMethod(self.method)

    @property
    def operation(self) -> str:
        return "get" if self.method == HttpMethod.GET else "save"


@dataclass
class FetchContext:
    options: Optional[FetchOptions] = None
    response: Optional[httpx.Response] = None
    states: FetchStates = field(default_factory=FetchStates)


@dataclass
class InstanceMeta:
    """Runtime metadata kept apart from the field values of an instance."""

    fetch: FetchContext = field(default_factory=FetchContext)
    is_collection: bool = False
    is_new: Optional[bool] = None
    validator: Dict[str, ValidatorEntry] = field(default_factory=dict)
    count: int = 0


@dataclass
class FetchFailure:
    """Passed to ``on_fetch_error`` when a request fails."""

    error: BaseException
    response: Optional[httpx.Response]
    instance: Any = None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class ModelOptions(BaseModel):
    """Type checked model options, see ``Model.init``."""

    model_config = ConfigDict(
        extra="forbid", arbitrary_types_allowed=True, populate_by_name=True
    )

    base_url: str = ""
    endpoint: str = ""
    collection_data_key: str = "rows"
    collection_count_key: str = "count"
    authentication: Optional[Callable[[], Any]] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    on_validation_error: Callable[..., Any] = _noop
    on_fetch_error: Callable[..., Any] = _noop
    transport: Optional[httpx.AsyncBaseTransport] = None

    @field_validator("authentication", "schema_", mode="before")
    @classmethod
    def _false_disables(cls, value):
        # ``False`` is accepted as an explicit "disabled"
        return None if value is False else value
