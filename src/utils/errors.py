"""
Error taxonomy for the data library
"""

from typing import Any, Dict, Optional


class DataLibraryError(Exception):
    """Base class for every error the data library surfaces to an operator"""

    status_code = 500
    default_message = "Data library error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {'success': False, 'error': type(self).__name__, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidIdentifier(DataLibraryError):
    """A table, column or constraint name (or clause) is unsafe for DDL"""
    status_code = 400
    default_message = "Invalid identifier"


class InvalidRequest(DataLibraryError):
    """Malformed request, e.g. a non-positive page number"""
    status_code = 400
    default_message = "Invalid request"


class ConstraintError(DataLibraryError):
    """A constraint definition references an invalid table or column"""
    status_code = 400
    default_message = "Invalid constraint definition"


class UnknownColumn(DataLibraryError):
    status_code = 400
    default_message = "Unknown column"


class MissingIdColumn(DataLibraryError):
    """Row-level writes need a column literally named ``id``"""
    status_code = 400
    default_message = "Table has no 'id' column"


class ProtectedTable(DataLibraryError):
    """Write attempted against a system table"""
    status_code = 403
    default_message = "protected"


class NotFound(DataLibraryError):
    status_code = 404
    default_message = "Not found"


class DuplicateTable(DataLibraryError):
    status_code = 409
    default_message = "Table already exists"


class DataIntegrityError(DataLibraryError):
    """The store rejected a write (NOT NULL, UNIQUE, FOREIGN KEY...)"""
    status_code = 409
    default_message = "Data integrity violation"


class RateLimited(DataLibraryError):
    status_code = 429
    default_message = "Too many requests"


class NetworkError(DataLibraryError):
    """Transient transport or connection failure. Never retried automatically."""
    status_code = 503
    default_message = "Network error"


ERRORS_BY_STATUS = {
    400: InvalidRequest,
    403: ProtectedTable,
    404: NotFound,
    409: DataIntegrityError,
    429: RateLimited,
    503: NetworkError,
}

ERRORS_BY_NAME = {
    error_class.__name__: error_class
    for error_class in (
        DataLibraryError, InvalidIdentifier, InvalidRequest, ConstraintError, UnknownColumn,
        MissingIdColumn, ProtectedTable, NotFound, DuplicateTable, DataIntegrityError,
        RateLimited, NetworkError,
    )
}
