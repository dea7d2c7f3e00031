"""
Exceptions raised by the document store, the spreadsheet fetcher and the drive sync.

Every error carries a message meant to be shown to the admin as-is.
Row- and file-level problems are never raised; they come back as data.
"""
from typing import Optional


class CateringError(Exception):
    """Base class for every error this package raises"""


class DatabaseError(CateringError):
    """Remote document store failure, tagged with a short machine-readable code"""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class NoCredentialsError(DatabaseError):
    code = "NO_CREDENTIALS"


class DocumentNotFoundError(DatabaseError):
    code = "NOT_FOUND"


class InvalidTokenError(DatabaseError):
    code = "INVALID_TOKEN"


class FetchError(DatabaseError):
    code = "FETCH_ERROR"


class DuplicateIdError(DatabaseError):
    code = "DUPLICATE_ID"


class ConflictError(DatabaseError):
    """The remote version moved between our read and our write"""

    code = "CONFLICT"

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Database was changed by someone else (expected version {expected}, found {actual}). "
            "Reload the data and apply your changes again."
        )
        self.expected = expected
        self.actual = actual


class SheetsError(CateringError):
    """Spreadsheet service failure"""


class MissingApiKeyError(SheetsError):
    def __init__(self):
        super().__init__(
            "Google API key is not configured. Set GOOGLE_API_KEY in your .env file "
            "(Google Cloud Console → APIs & Services → Credentials → Create API key)."
        )


class SheetsNetworkError(SheetsError):
    pass


class SpreadsheetNotFoundError(SheetsError):
    pass


class SheetsAccessDeniedError(SheetsError):
    def __init__(self, message: str, service_disabled: bool = False):
        super().__init__(message)
        self.service_disabled = service_disabled


class SheetsRequestError(SheetsError):
    pass


class DriveSyncError(CateringError):
    """Folder listing or storage configuration failure"""
