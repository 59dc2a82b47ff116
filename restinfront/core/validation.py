"""
Field validation.

A field list names what to validate. Entries are either a field name, or a
``(fieldname, nested_field_list)`` pair that validates an association::

    post.valid([
        "title",
        ("author", ["name", "email"]),   # BelongsTo / HasOne
        ("comments", ["body"]),          # HasMany, every item
        ("tags", None),                  # the association field itself
    ])
"""
from typing import Any, Dict, Mapping, Sequence

from restinfront.core.classes import FieldConfig, FieldError, ValidatorEntry
from restinfront.core.exceptions import ValidationSyntaxError
from restinfront.core.types import Association, ErrorMap, ValidationErrorCode


def _field_validator(field_config: FieldConfig):
    field_type = field_config.type

    def is_valid(value: Any, data: Any) -> bool:
        is_blank = field_type.is_blank(value)
        return (
            (
                # Blank and allowed
                (is_blank and field_config.allow_blank(value, data))
                # Not blank and valid
                or (not is_blank and field_type.is_valid(value))
            )
            and field_config.is_valid(value, data)
        )

    return is_valid


def build_validator(schema: Mapping[str, FieldConfig]) -> Dict[str, ValidatorEntry]:
    """Build a fresh validator table, one entry per schema field."""
    return {
        fieldname: ValidatorEntry(
            checked=field_config.auto_checked,
            is_valid=_field_validator(field_config),
        )
        for fieldname, field_config in schema.items()
    }


def _has_field(instance, fieldname: str) -> bool:
    return fieldname in instance._restinfront.validator and fieldname in vars(instance)


def _validate_association(instance, fieldname: str, field_list: Sequence) -> Any:
    if not isinstance(field_list, (list, tuple)):
        raise ValidationSyntaxError(
            f"valid: nested field list of `{fieldname}` MUST be a list or None"
        )

    field_type = type(instance).config().schema[fieldname].type
    association = getattr(field_type, "association", None)
    value = getattr(instance, fieldname)

    if association in (Association.BELONGS_TO, Association.HAS_ONE):
        if value is None:
            return {}
        return validate_fields(value, field_list)

    if association == Association.HAS_MANY:
        item_errors: Dict[int, ErrorMap] = {}
        if value is None:
            return item_errors
        for index, item in enumerate(value):
            errors = validate_fields(item, field_list)
            if errors:
                item_errors[index] = errors
        return item_errors

    raise ValidationSyntaxError(f"valid: `{fieldname}` field is not an association")


def validate_fields(instance, field_list: Sequence) -> ErrorMap:
    """
    Validate the listed fields of an item instance, recursing into associations.

    Every visited field is marked as checked.

    Returns:
        The error map, empty when every listed field is valid

    Raises:
        ValidationSyntaxError: If an entry of the field list is malformed
    """
    errors: ErrorMap = {}
    validator = instance._restinfront.validator

    for field_item in field_list:
        if isinstance(field_item, str):
            fieldname = field_item
            if not _has_field(instance, fieldname):
                errors[fieldname] = FieldError(ValidationErrorCode.NOT_FOUND)
                continue

            entry = validator[fieldname]
            entry.checked = True
            value = getattr(instance, fieldname)
            if not entry.is_valid(value, instance):
                errors[fieldname] = FieldError(ValidationErrorCode.NOT_VALID, value)

        elif (
            isinstance(field_item, (list, tuple))
            and len(field_item) == 2
            and isinstance(field_item[0], str)
        ):
            fieldname, nested_list = field_item
            if not _has_field(instance, fieldname):
                errors[fieldname] = FieldError(ValidationErrorCode.NOT_FOUND)
                continue

            validator[fieldname].checked = True
            if nested_list is None:
                association_errors = validate_fields(instance, [fieldname])
            else:
                association_errors = _validate_association(instance, fieldname, nested_list)

            if association_errors:
                errors[fieldname] = association_errors

        else:
            raise ValidationSyntaxError(f"valid: param syntax error ({field_item!r})")

    return errors


def error_map_to_dict(errors: ErrorMap) -> Dict:
    """Plain dict rendering of an error map, e.g. for JSON logging."""
    rendered = {}
    for key, value in errors.items():
        if isinstance(value, FieldError):
            rendered[key] = value.to_dict()
        else:
            rendered[key] = error_map_to_dict(value)
    return rendered
