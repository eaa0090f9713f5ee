# Exception Handlers
#
# The application loglevel determines the level of detail shown to the user.
# If set to debug, too much sensitive info might be shown !
#
# The exceptions are caught by the resource controller and formatted as an envelope, for example:
# {
#      "success": false,
#      "statusCode": 409,
#      "message": "User with this email already exists",
#      "data": null
# }
#
from http import HTTPStatus
from typing import Any, List, Optional
import docrud
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class DocrudError(Exception):
    """
    Base class of the errors that are converted to an envelope
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""
    # details returned in the envelope "error" member instead of "data"
    errors: Optional[List[Any]] = None

    def __init__(self, message: str = "", status_code: Optional[int] = None) -> None:
        Exception.__init__(self, message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.message

    def __str__(self) -> str:
        return self.message


class ValidationError(DocrudError):
    """
    This exception is raised when invalid input has been detected (client side input)
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Validation error"

    def __init__(self, message: str = "", status_code: int = HTTPStatus.BAD_REQUEST.value, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, status_code)
        self.errors = errors
        docrud.log.warning("ValidationError: %s %s", self.message, errors or "")


class ConflictError(DocrudError):
    """
    This exception is raised when a primary key value is already used by another document
    """

    status_code = HTTPStatus.CONFLICT.value

    def __init__(self, message: str = "", status_code: int = HTTPStatus.CONFLICT.value, values: Optional[List[Any]] = None) -> None:
        super().__init__(message, status_code)
        self.values = values
        self.errors = values
        docrud.log.warning("Conflict: %s %s", self.message, values or "")


class NotFoundError(DocrudError):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value

    def __init__(self, message: str = "", status_code: int = HTTPStatus.NOT_FOUND.value) -> None:
        super().__init__(message, status_code)
        docrud.log.info("Not found: %s", self.message)


class StoreError(DocrudError):
    """
    This exception is raised when the document store failed unexpectedly
    The message is only shown to the client in debug mode
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value

    def __init__(self, message: str = "", status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR.value) -> None:
        super().__init__(message, status_code)
        docrud.log.error("Store Error: %s", message)
        self.detail = message

    @property
    def public_message(self) -> str:
        """
        :return: the message that may be sent to the client
        """
        if is_debug():
            return self.detail
        return HIDDEN_LOG


class IntegrityViolation(StoreError):
    """
    Raised when the store rejected a write because of a constraint (eg. a unique index)
    """


class SystemValidationError(DocrudError):
    """
    This exception is raised when invalid server side input has been detected,
    eg. a malformed resource descriptor at registration time
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Configuration Error: "

    def __init__(self, message: str = "", status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR.value) -> None:
        super().__init__(self.message + message, status_code)
        docrud.log.error("SystemValidationError: %s", message)
