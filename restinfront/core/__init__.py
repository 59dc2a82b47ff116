"""
restinfront core: schema compilation, validation and the entity/collection runtime.
"""

from restinfront.core.classes import FetchFailure, FetchStates, FieldError
from restinfront.core.config import ModelConfig, Registry
from restinfront.core.exceptions import (AuthenticationError,
                                         CollectionOperationError,
                                         ConfigurationError, FetchPayloadError,
                                         FetchStatusError, RestinfrontError,
                                         SchemaError, ValidationSyntaxError)
from restinfront.core.field_types import (AnyType, BelongsTo, BooleanType,
                                          DateTimeType, FieldType, HasMany,
                                          HasOne, JSONType, NumberType,
                                          StringType)
from restinfront.core.model import Model
from restinfront.core.references import ByKey, ByObject, ByPredicate
from restinfront.core.types import Association, HttpMethod, ValidationErrorCode

__all__ = [
    # Types
    "Association",
    "HttpMethod",
    "ValidationErrorCode",
    "FieldError",
    "FetchFailure",
    "FetchStates",
    # Configuration
    "ModelConfig",
    "Registry",
    # Runtime
    "Model",
    "ByKey",
    "ByObject",
    "ByPredicate",
    # Field types
    "FieldType",
    "AnyType",
    "StringType",
    "NumberType",
    "BooleanType",
    "DateTimeType",
    "JSONType",
    "BelongsTo",
    "HasOne",
    "HasMany",
    # Errors
    "RestinfrontError",
    "SchemaError",
    "ConfigurationError",
    "AuthenticationError",
    "ValidationSyntaxError",
    "CollectionOperationError",
    "FetchStatusError",
    "FetchPayloadError",
]
