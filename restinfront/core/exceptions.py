from dataclasses import dataclass
from typing import Optional


@dataclass
class ErrorDetail:
    message: str
    code: str

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"ErrorDetail(message={self.message!r}, code={self.code!r})"


class RestinfrontError(Exception):
    """Base exception for all restinfront errors."""

    default_detail: str = "A restinfront error occurred."
    default_code: str = "error"

    def __init__(self, detail: Optional[str] = None, code: Optional[str] = None):
        detail = detail if detail is not None else self.default_detail
        self.detail = ErrorDetail(detail, code or self.default_code)
        super().__init__(str(self.detail))


class SchemaError(RestinfrontError):
    """Error raised for a malformed model schema declaration."""

    default_detail = "Invalid model schema."
    default_code = "schema_error"


class ConfigurationError(RestinfrontError):
    """Error raised when a model option is missing or invalid."""

    default_detail = "Invalid model configuration."
    default_code = "configuration_error"


class AuthenticationError(RestinfrontError):
    """Error raised when the authentication provider yields no token."""

    default_detail = "Authentication returned an invalid token."
    default_code = "authentication_error"


class ValidationSyntaxError(RestinfrontError):
    """Error raised for a malformed field list passed to ``valid``."""

    default_detail = "Validation field list syntax error."
    default_code = "validation_syntax_error"


class CollectionOperationError(RestinfrontError):
    """Error raised when an item operation is called on a collection, or the reverse."""

    default_detail = "Operation not allowed for this instance mode."
    default_code = "collection_operation_error"


class FetchStatusError(RestinfrontError):
    """Error raised when the server responds with a non-2xx status code."""

    default_code = "fetch_status_error"

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        super().__init__(
            detail
            or f"The server responded with an error status code ({status_code})."
        )


class FetchPayloadError(RestinfrontError):
    """Error raised when a response body does not fit the instance it is merged into."""

    default_detail = "The response body cannot be merged into this instance."
    default_code = "fetch_payload_error"
