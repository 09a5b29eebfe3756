"""Error types shared by the API server and the command line client."""

from __future__ import annotations

import enum
import logging
from typing import Any

logger = logging.getLogger(__name__)

API_CODE_NOT_FOUND = 404

_CODE_NAMES = {
    0: "OK",
    1: "Canceled",
    2: "Unknown",
    3: "InvalidArgument",
    4: "DeadlineExceeded",
    5: "NotFound",
    6: "AlreadyExists",
    7: "PermissionDenied",
    8: "ResourceExhausted",
    9: "FailedPrecondition",
    10: "Aborted",
    11: "OutOfRange",
    12: "Unimplemented",
    13: "Internal",
    14: "Unavailable",
    15: "DataLoss",
    16: "Unauthenticated",
}


class StatusCode(enum.IntEnum):
    """gRPC status codes reported to external clients."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    def __str__(self) -> str:
        return _CODE_NAMES[int(self)]


class CustomCode(enum.IntEnum):
    """Classification codes carried by :class:`CustomError`."""

    TRANSIENT = 0
    PERMANENT = 1
    NOT_FOUND = 2
    GENERIC = 3


def _sprintf(format: str, args: tuple[Any, ...]) -> str:
    return format % args if args else format


def _to_code(value: int) -> StatusCode | int:
    try:
        return StatusCode(value)
    except ValueError:
        return int(value)


def _code_str(code: StatusCode | int) -> str:
    if isinstance(code, StatusCode):
        return str(code)
    return f"Code({code})"


class WrappedError(Exception):
    """An error annotated with a context message; the original is its cause."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class CustomError(Exception):
    """An error tagged with a :class:`CustomCode`."""

    def __init__(self, error: BaseException, code: CustomCode):
        super().__init__(str(error))
        self.error = error
        self.code = code
        self.__cause__ = error

    def __str__(self) -> str:
        return str(self.error)


class ApiError(Exception):
    """An error returned by a remote HTTP API, carrying its HTTP status."""

    def __init__(self, operation_name: str, code: int, response: Any = None):
        super().__init__(operation_name, code)
        self.operation_name = operation_name
        self.code = code
        self.response = response

    def __str__(self) -> str:
        return f"{self.operation_name} (status {self.code}): {self.response}"


class StatusError(Exception):
    """An error reported by the Kubernetes API, with its status reason."""

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason
        self.message = message or reason

    def __str__(self) -> str:
        return self.message


class UserError(Exception):
    """An error with an internal description and a client-facing message and code."""

    def __init__(
        self,
        internal_error: BaseException,
        external_message: str,
        external_status_code: StatusCode | int,
    ):
        super().__init__(str(internal_error))
        self.internal_error = internal_error
        self.external_message = external_message
        self.external_status_code = external_status_code
        self.__cause__ = internal_error

    def __str__(self) -> str:
        return str(self.internal_error)

    def __repr__(self) -> str:
        return (
            f"{self.external_message} (code: {_code_str(self.external_status_code)}): "
            f"{self.internal_error}"
        )

    @property
    def cause(self) -> BaseException:
        return self.internal_error

    def error_string_without_stack_trace(self) -> str:
        return f"{self.external_message}: {self.internal_error}"

    def grpc_status(self) -> tuple[StatusCode | int, str]:
        """The status code and message to report over gRPC."""
        return self.external_status_code, self.error_string_without_stack_trace()

    def wrapf(self, format: str, *args: Any) -> UserError:
        return UserError(
            WrappedError(_sprintf(format, args), self.internal_error),
            self.external_message,
            self.external_status_code,
        )

    def wrap(self, message: str) -> UserError:
        return UserError(
            WrappedError(message, self.internal_error),
            self.external_message,
            self.external_status_code,
        )

    def log(self) -> None:
        if self.external_status_code in (
            StatusCode.ABORTED,
            StatusCode.INVALID_ARGUMENT,
            StatusCode.NOT_FOUND,
            StatusCode.INTERNAL,
        ):
            logger.info("%s", self.internal_error)
        else:
            logger.error("%s", self.internal_error)


class FlagError(Exception):
    """An error raised while processing command line flags."""

    def __init__(self, err: BaseException):
        super().__init__(str(err))
        self.err = err
        self.__cause__ = err

    def __str__(self) -> str:
        return str(self.err)


class SilentError(Exception):
    """An error that ends the command with status 1 and prints nothing."""

    def __init__(self, message: str = "SilentError"):
        super().__init__(message)


def new_custom_error(
    err: BaseException | None, code: CustomCode, format: str, *args: Any
) -> CustomError:
    message = _sprintf(format, args)
    return CustomError(
        WrappedError(f"CustomError (code: {int(code)}): {message}", err), code
    )


def new_custom_errorf(code: CustomCode, format: str, *args: Any) -> CustomError:
    message = _sprintf(format, args)
    return CustomError(WrappedError(f"CustomError (code: {int(code)}): {message}"), code)


def has_custom_code(err: BaseException | None, code: CustomCode) -> bool:
    return isinstance(err, CustomError) and err.code == code


def new_user_error(
    err: BaseException, internal_message: str, external_message: str
) -> UserError:
    internal = WrappedError(internal_message, err)
    if isinstance(err, ApiError):
        if err.code == API_CODE_NOT_FOUND:
            return UserError(
                internal,
                f"{external_message}: Resource not found",
                _to_code(err.code),
            )
        return UserError(
            internal,
            f"{external_message}. Raw error from the service: {err}",
            _to_code(err.code),
        )
    return UserError(
        internal,
        f"{external_message}. Raw error from the service: {err}",
        StatusCode.INTERNAL,
    )


def new_user_error_with_single_message(err: BaseException, message: str) -> UserError:
    return new_user_error(err, message, message)


def extract_error_for_cli(err: BaseException, is_debug_mode: bool) -> BaseException:
    """Reduce a :class:`UserError` to the message a command line user should see."""
    if isinstance(err, UserError):
        if is_debug_mode:
            return RuntimeError(str(err.internal_error))
        return RuntimeError(err.external_message)
    return err


def new_internal_server_error(
    err: BaseException | None, format: str, *args: Any
) -> UserError:
    internal_message = _sprintf(format, args)
    return UserError(
        WrappedError(f"InternalServerError: {internal_message}", err),
        "Internal Server Error",
        StatusCode.INTERNAL,
    )


def new_not_found_error(err: BaseException | None, format: str, *args: Any) -> UserError:
    external_message = _sprintf(format, args)
    return UserError(
        WrappedError(f"NotFoundError: {external_message}", err),
        external_message,
        StatusCode.NOT_FOUND,
    )


def new_resource_not_found_error(resource_type: str, resource_name: str) -> UserError:
    external_message = f"{resource_type} {resource_name} not found."
    return UserError(
        WrappedError(f"ResourceNotFoundError: {external_message}"),
        external_message,
        StatusCode.NOT_FOUND,
    )


def new_resources_not_found_error(format: str, *args: Any) -> UserError:
    external_message = f"{_sprintf(format, args)} not found."
    return UserError(
        WrappedError(f"ResourceNotFoundError: {external_message}"),
        external_message,
        StatusCode.NOT_FOUND,
    )


def new_invalid_input_error(format: str, *args: Any) -> UserError:
    message = _sprintf(format, args)
    return UserError(
        WrappedError(f"Invalid input error: {message}"),
        message,
        StatusCode.INVALID_ARGUMENT,
    )


def new_invalid_input_error_with_details(
    err: BaseException | None, external_message: str
) -> UserError:
    return UserError(
        WrappedError(f"InvalidInputError: {external_message}", err),
        external_message,
        StatusCode.INVALID_ARGUMENT,
    )


def new_already_exist_error(format: str, *args: Any) -> UserError:
    message = _sprintf(format, args)
    return UserError(
        WrappedError(f"Already exist error: {message}"),
        message,
        StatusCode.ALREADY_EXISTS,
    )


def new_bad_request_error(err: BaseException | None, format: str, *args: Any) -> UserError:
    external_message = _sprintf(format, args)
    return UserError(
        WrappedError(f"BadRequestError: {external_message}", err),
        external_message,
        StatusCode.ABORTED,
    )


def new_unauthenticated_error(
    err: BaseException | None, format: str, *args: Any
) -> UserError:
    external_message = _sprintf(format, args)
    return UserError(
        WrappedError(f"Unauthenticated: {external_message}", err),
        external_message,
        StatusCode.UNAUTHENTICATED,
    )


def new_permission_denied_error(
    err: BaseException | None, format: str, *args: Any
) -> UserError:
    external_message = _sprintf(format, args)
    return UserError(
        WrappedError(f"PermissionDenied: {external_message}", err),
        external_message,
        StatusCode.PERMISSION_DENIED,
    )


def wrapf(err: BaseException | None, format: str, *args: Any) -> BaseException | None:
    """Add context to an error, keeping a :class:`UserError`'s client-facing parts."""
    if err is None:
        return None
    if isinstance(err, UserError):
        return err.wrapf(format, *args)
    return WrappedError(_sprintf(format, args), err)


def wrap(err: BaseException | None, message: str) -> BaseException | None:
    """Add context to an error, keeping a :class:`UserError`'s client-facing parts."""
    if err is None:
        return None
    if isinstance(err, UserError):
        return err.wrap(message)
    return WrappedError(message, err)


def log_error(err: BaseException) -> None:
    if isinstance(err, UserError):
        err.log()
    else:
        logger.error("InternalError: %s", err)


def is_not_found(err: BaseException | None) -> bool:
    """Whether the error is a Kubernetes "not found" status."""
    return isinstance(err, StatusError) and err.reason == "NotFound"


def is_user_error_code_match(err: BaseException | None, code: StatusCode | int) -> bool:
    return isinstance(err, UserError) and err.external_status_code == code