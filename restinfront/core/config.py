from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Type

import httpx
from pydantic import ValidationError

from restinfront.core.classes import FieldConfig, ModelOptions
from restinfront.core.exceptions import ConfigurationError
from restinfront.core.schema import compile_schema

OPTION_NAMES = tuple(
    field_info.alias or name for name, field_info in ModelOptions.model_fields.items()
)


@dataclass(frozen=True)
class ModelConfig:
    """
    Immutable configuration of a model class, produced once when the class is
    declared (or re-initialized with ``Model.init``).

    Parameters:
    -----------
    base_url: str
        Prefix joined in front of the endpoint
    endpoint: str
        Resource path; required to perform a request
    collection_data_key: str
        Response key holding the rows of a paginated list
    collection_count_key: str
        Response key holding the total of a paginated list
    authentication: Optional[Callable]
        Nullary (async) callable returning a bearer token
    schema: Mapping[str, FieldConfig]
        The compiled schema, empty when the model declares none
    primary_key: Optional[str]
        Name of the primary key field
    on_validation_error: Callable
        Called with the error map when ``valid`` fails
    on_fetch_error: Callable
        Called with a FetchFailure when a request fails
    transport: Optional[httpx.AsyncBaseTransport]
        Transport handed to the per-request httpx client
    """

    base_url: str
    endpoint: str
    collection_data_key: str
    collection_count_key: str
    authentication: Optional[Callable[[], Any]]
    schema: Mapping[str, FieldConfig]
    primary_key: Optional[str]
    on_validation_error: Callable[..., Any]
    on_fetch_error: Callable[..., Any]
    transport: Optional[httpx.AsyncBaseTransport]

    @property
    def has_schema(self) -> bool:
        return bool(self.schema)


def build_model_config(
    model_name: str, options: Dict[str, Any], reserved_names: Iterable[str] = ()
) -> ModelConfig:
    """Type check the raw options of a model and compile its schema."""
    try:
        checked = ModelOptions.model_validate(options)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options on {model_name} model: {e}") from e

    schema: Dict[str, FieldConfig] = {}
    primary_key = None
    if checked.schema_:
        schema, primary_key = compile_schema(
            model_name, checked.schema_, reserved_names=reserved_names
        )

    return ModelConfig(
        base_url=checked.base_url,
        endpoint=checked.endpoint,
        collection_data_key=checked.collection_data_key,
        collection_count_key=checked.collection_count_key,
        authentication=checked.authentication,
        schema=MappingProxyType(schema),
        primary_key=primary_key,
        on_validation_error=checked.on_validation_error,
        on_fetch_error=checked.on_fetch_error,
        transport=checked.transport,
    )


class Registry:
    """
    Global registry mapping model names to model classes. Association field
    types use it to resolve models referenced by name.
    """

    _models: Dict[str, Type] = {}

    @classmethod
    def register(cls, name: str, model: Type) -> None:
        cls._models[name] = model

    @classmethod
    def get(cls, name: str) -> Type:
        model = cls._models.get(name)
        if model is None:
            raise ConfigurationError(f"Model {name} is not registered.")
        return model

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._models.pop(name, None)

    @classmethod
    def clear(cls) -> None:
        cls._models.clear()
