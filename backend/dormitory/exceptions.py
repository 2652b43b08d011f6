"""Domain exceptions raised by services and translated to HTTP responses.

Every exception carries a human-readable `message`, an `ErrorCode` and
the HTTP status the API layer should answer with. Controllers never build
error payloads by hand; FastAPI exception handlers in `main` turn any
`DormitoryError` into `{"error": message}`.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ALREADY_SETTLED = "ALREADY_SETTLED"
    ROOM_FULL = "ROOM_FULL"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    DATABASE_ERROR = "DATABASE_ERROR"
    STARTUP_FAILED = "STARTUP_FAILED"


class DormitoryError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, error_code: ErrorCode, status_code: int = 500):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message}

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class NotFoundError(DormitoryError):
    """A referenced student, room or settlement does not exist."""

    def __init__(self, message: str, error_code: ErrorCode, status_code: int = 404):
        super().__init__(message, error_code, status_code)


class ConflictError(DormitoryError):
    """A business rule would be violated (already settled, room full)."""

    def __init__(self, message: str, error_code: ErrorCode):
        super().__init__(message, error_code, 400)


class InvalidReferenceError(DormitoryError):
    """A foreign key points at a row that does not exist."""

    def __init__(self, message: str, field: str):
        self.field = field
        super().__init__(message, ErrorCode.FOREIGN_KEY_VIOLATION, 400)


class StoreError(DormitoryError):
    """Unexpected failure of the backing database.

    The message is safe to show to clients; the original exception is kept
    on `__cause__` and logged server-side.
    """

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, ErrorCode.DATABASE_ERROR, 500)


class StartupError(DormitoryError):
    """The database could not be reached or initialised at startup."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.STARTUP_FAILED, 500)


# SQLSTATE (PostgreSQL) and server error numbers (MySQL/MariaDB).
_UNIQUE_CODES = {"23505", 1062}
_FOREIGN_KEY_CODES = {"23503", 1452}


def classify_integrity_error(exc: Exception) -> Optional[str]:
    """Return `"unique"`, `"foreign_key"` or `None` for a driver integrity error.

    Accepts either a SQLAlchemy `IntegrityError` (the DBAPI error is read
    from `.orig`) or a raw DBAPI exception. Drivers that expose a code are
    matched on it; sqlite only exposes a message, which is matched on text.
    """
    orig = getattr(exc, "orig", None) or exc
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is None and getattr(orig, "args", None):
        code = orig.args[0]
    if code in _UNIQUE_CODES:
        return "unique"
    if code in _FOREIGN_KEY_CODES:
        return "foreign_key"
    text = str(orig).lower()
    if "unique" in text or "duplicate" in text:
        return "unique"
    if "foreign key" in text:
        return "foreign_key"
    return None
