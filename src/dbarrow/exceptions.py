"""
Conversion exception classes.
"""
import re
import sqlite3

import psycopg

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'eof detected',
    r'broken pipe',
    r'connection reset',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r'no route to host',
    r'network.*(unreachable|error)',
    r'host.*(unreachable|down)',
    # Database unavailable
    r'database.*unavailable',
    r'too many connections',
    r'database is locked',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    The conversion itself never retries. Callers that want to retry must
    re-run the whole conversion against a fresh result, and this tells them
    whether that has a chance of succeeding:

    - SSL/TLS errors, connection drops, timeouts and network issues are
      considered transient
    - Syntax errors, type mismatches and conversion failures are not

    :param exc: The exception to check.
    :returns: True if the error is likely transient and worth retrying.
    """
    error_msg = str(exc).lower()
    return bool(_RETRYABLE_REGEX.search(error_msg))


class DatabaseError(Exception):
    """Base class for all dbarrow errors.
    """


class ValidationError(DatabaseError, ValueError):
    """Error in input validation.
    """


class NullArgumentError(ValidationError):
    """A required argument of a public entry point was None.
    """


class InvalidArgumentError(ValidationError):
    """An argument of a public entry point has an unusable value.
    """


class UnsupportedTypeError(DatabaseError):
    """A relational type has no columnar codec.
    """

    def __init__(self, message: str, column: str | None = None,
                 type_code: object = None) -> None:
        super().__init__(message)
        self.column = column
        self.type_code = type_code


class ConversionError(DatabaseError):
    """A cell value cannot be converted to its column's columnar type.

    The codec raises it with only a message; the row driver fills in the
    column and row position before it reaches the caller.
    """

    def __init__(self, message: str, value: object = None,
                 column: str | None = None, column_index: int | None = None,
                 row: int | None = None) -> None:
        super().__init__(message)
        self.reason = message
        self.value = value
        self.column = column
        self.column_index = column_index
        self.row = row

    def __str__(self) -> str:
        if self.column is None and self.row is None:
            return self.reason
        return (f'{self.reason} (column {self.column!r} at index '
                f'{self.column_index}, row {self.row})')


class SourceError(DatabaseError):
    """The underlying cursor failed while producing rows.
    """

    @property
    def retryable(self) -> bool:
        cause = self.__cause__ if self.__cause__ is not None else self
        return is_retryable_error(cause)


class AllocationError(DatabaseError):
    """Buffer memory could not be allocated.
    """


class SchemaConsistencyError(DatabaseError, RuntimeError):
    """Finished columns disagree on the row count.

    Indicates a defect in the row driver, not a data problem.
    """


DriverError = (
    psycopg.Error,
    sqlite3.Error,
    )
