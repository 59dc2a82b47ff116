"""
Schema compilation.

A raw schema maps field names to plain dicts::

    {
        "id": {"type": StringType(), "primary_key": True, "default_value": make_id},
        "name": {"type": StringType(), "allow_blank": False},
        "author": {"type": BelongsTo("User"), "allow_blank": True},
    }

It is compiled once per model class into a closed mapping of FieldConfig.
"""
import copy
import inspect
import warnings
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from restinfront.core.classes import FieldConfig
from restinfront.core.exceptions import SchemaError

FIELD_OPTIONS = frozenset(
    {"type", "primary_key", "default_value", "allow_blank", "is_valid", "auto_checked"}
)

# Checked without an explicit validation pass, like the primary key
TIMESTAMP_FIELDS = frozenset({"createdAt", "updatedAt", "created_at", "updated_at"})

FIELD_TYPE_CONTRACT = ("is_blank", "is_valid", "before_build", "before_serialize")


def _required_arity(fn: Callable) -> int:
    """Number of positional parameters ``fn`` needs, 0 when unknown."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 0
    count = 0
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return count + 1
        if (
            param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
            and param.default is param.empty
        ):
            count += 1
    return count


def _adapt(fn: Callable, max_args: int) -> Callable:
    """Wrap ``fn`` so it can always be called with ``max_args`` positional arguments."""
    arity = min(_required_arity(fn), max_args)
    if arity == max_args:
        return fn
    return lambda *args: fn(*args[:arity])


def _as_default_factory(value: Any) -> Callable[[Any], Any]:
    if callable(value):
        return _adapt(value, 1)
    # Mutable defaults must not be shared between instances
    return lambda primary_key: copy.deepcopy(value)


def _as_predicate(value: Any) -> Callable[[Any, Any], bool]:
    if callable(value):
        return _adapt(value, 2)
    flag = bool(value)
    return lambda value, data: flag


def _compile_field(
    model_name: str, fieldname: str, fieldconf: Mapping[str, Any]
) -> FieldConfig:
    if not isinstance(fieldconf, Mapping):
        raise SchemaError(
            f"`{fieldname}` field of {model_name} model must be declared with a dict"
        )

    unknown = set(fieldconf) - FIELD_OPTIONS
    if unknown:
        raise SchemaError(
            f"Unknown attributes {sorted(unknown)} on `{fieldname}` field of {model_name} model"
        )

    field_type = fieldconf.get("type")
    if field_type is None:
        raise SchemaError(
            f"`type` field attribute is required on `{fieldname}` field of {model_name} model"
        )
    for method in FIELD_TYPE_CONTRACT:
        if not callable(getattr(field_type, method, None)):
            raise SchemaError(
                f"`type` of `{fieldname}` field on {model_name} model has no `{method}` method"
            )

    primary_key = bool(fieldconf.get("primary_key", False))

    # Explicit default takes precedence over the type default
    if "default_value" in fieldconf:
        default_value = fieldconf["default_value"]
    else:
        default_value = getattr(field_type, "default_value", None)

    auto_checked = fieldconf.get("auto_checked")
    if auto_checked is None:
        auto_checked = primary_key or fieldname in TIMESTAMP_FIELDS

    return FieldConfig(
        name=fieldname,
        type=field_type,
        primary_key=primary_key,
        default_value=_as_default_factory(default_value),
        allow_blank=_as_predicate(fieldconf.get("allow_blank", False)),
        is_valid=_as_predicate(fieldconf.get("is_valid", True)),
        auto_checked=bool(auto_checked),
    )


def compile_schema(
    model_name: str,
    raw_schema: Mapping[str, Mapping[str, Any]],
    reserved_names: Iterable[str] = (),
) -> Tuple[Dict[str, FieldConfig], Optional[str]]:
    """
    Compile a raw schema into field configs.

    Args:
        model_name: Used in error messages
        raw_schema: Field name to field declaration, left untouched
        reserved_names: Names a field may not use (the runtime API of the model)

    Returns:
        Tuple of (field name -> FieldConfig, primary key field name or None)

    Raises:
        SchemaError: If a field declaration is invalid
    """
    # Sibling classes may share the same schema object
    raw_schema = copy.deepcopy(dict(raw_schema))
    reserved = frozenset(reserved_names)

    schema: Dict[str, FieldConfig] = {}
    primary_key = None

    for fieldname, fieldconf in raw_schema.items():
        if not isinstance(fieldname, str) or not fieldname.isidentifier():
            raise SchemaError(f"Invalid field name {fieldname!r} on {model_name} model")
        if fieldname.startswith("_") or fieldname in reserved:
            raise SchemaError(
                f"`{fieldname}` field of {model_name} model shadows the model runtime API"
            )

        field_config = _compile_field(model_name, fieldname, fieldconf)

        if field_config.primary_key:
            if primary_key is not None:
                raise SchemaError(
                    f"`primary_key` is set on both `{primary_key}` and `{fieldname}` "
                    f"fields of {model_name} model"
                )
            primary_key = fieldname

        schema[fieldname] = field_config

    if primary_key is None:
        warnings.warn(
            f"`primary_key` field attribute is missing on {model_name} model. "
            f"This can lead to unexpected behavior.",
            UserWarning,
            stacklevel=5,
        )

    return schema, primary_key
