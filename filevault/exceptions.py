"""Custom exception hierarchy for FileVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookups
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SHARE_NOT_FOUND = "SHARE_NOT_FOUND"
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    INVALID_SHARE_LINK = "INVALID_SHARE_LINK"

    # Business rules
    INVALID_OPERATION = "INVALID_OPERATION"
    FOLDER_NOT_EMPTY = "FOLDER_NOT_EMPTY"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"

    # Identity and ownership
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"

    # Share link passwords
    PASSWORD_REQUIRED = "PASSWORD_REQUIRED"
    INVALID_PASSWORD = "INVALID_PASSWORD"

    # Concurrency
    CONFLICT = "CONFLICT"

    # Infrastructure
    TOKEN_GENERATION_EXHAUSTED = "TOKEN_GENERATION_EXHAUSTED"
    EXTERNAL_STORE_FAILURE = "EXTERNAL_STORE_FAILURE"


class FileVaultException(Exception):
    """
    Base exception for all FileVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


# ---------------------------------------------------------------------------
# NotFound
# ---------------------------------------------------------------------------

class NotFoundError(FileVaultException):
    """A referenced resource does not exist (or is not visible to the caller)."""

    def __init__(self, message: str, error_code: ErrorCode, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, status_code=404, details=details)


class FolderNotFoundError(NotFoundError):

    def __init__(self, folder_id: str):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id},
        )


class StoredFileNotFoundError(NotFoundError):

    def __init__(self, file_id: str):
        super().__init__(
            f"File not found: {file_id}",
            ErrorCode.FILE_NOT_FOUND,
            details={"file_id": file_id},
        )


class UserNotFoundError(NotFoundError):

    def __init__(self, identifier: str):
        super().__init__(
            f"User not found: {identifier}",
            ErrorCode.USER_NOT_FOUND,
            details={"user": identifier},
        )


class ShareNotFoundError(NotFoundError):
    """Share link or user share looked up by id does not exist."""

    def __init__(self, share_id: str):
        super().__init__(
            f"Share not found: {share_id}",
            ErrorCode.SHARE_NOT_FOUND,
            details={"share_id": share_id},
        )


class ObjectNotFoundError(NotFoundError):

    def __init__(self, object_ref: str):
        super().__init__(
            "Stored object not found",
            ErrorCode.OBJECT_NOT_FOUND,
            details={"object_ref": object_ref},
        )


class InvalidShareLinkError(NotFoundError):
    """Unknown, expired, or revoked share link.

    All three cases produce exactly the same error so callers cannot tell
    whether a token ever existed.
    """

    def __init__(self):
        super().__init__(
            "This share link is invalid or has expired",
            ErrorCode.INVALID_SHARE_LINK,
        )


# ---------------------------------------------------------------------------
# Ownership and identity
# ---------------------------------------------------------------------------

class AuthenticationError(FileVaultException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(message, ErrorCode.UNAUTHENTICATED, status_code=401)


class UnauthorizedError(FileVaultException):
    """The actor is not the owner of the resource it tried to change."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, ErrorCode.UNAUTHORIZED, status_code=403)


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

class InvalidOperationError(FileVaultException):
    """Request is well-formed but violates a structural rule (cycle, self-share, ...)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_OPERATION, status_code=409, details=details)


class FolderNotEmptyError(FileVaultException):

    def __init__(self, folder_id: str, child_folders: int, files: int):
        super().__init__(
            "Folder is not empty. Delete with cascade to remove its contents.",
            ErrorCode.FOLDER_NOT_EMPTY,
            status_code=409,
            details={"folder_id": folder_id, "child_folders": child_folders, "files": files},
        )


class ValidationError(FileVaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, ErrorCode.VALIDATION_ERROR, status_code=400, details=details)


class ConfirmationRequiredError(FileVaultException):
    """Destructive request sent without explicit confirmation."""

    def __init__(self, operation: str):
        super().__init__(
            f"Confirm the {operation} by repeating the request with confirm=true",
            ErrorCode.CONFIRMATION_REQUIRED,
            status_code=428,
            details={"operation": operation},
        )


class ConflictError(FileVaultException):
    """Update conflicts with a concurrent modification."""

    def __init__(self, resource_id: str, message: str = "Resource was modified concurrently, retry the request"):
        super().__init__(
            message,
            ErrorCode.CONFLICT,
            status_code=409,
            details={"resource_id": resource_id},
        )


# ---------------------------------------------------------------------------
# Share link passwords
# ---------------------------------------------------------------------------

class PasswordRequiredError(FileVaultException):

    def __init__(self):
        super().__init__(
            "This share link is password protected",
            ErrorCode.PASSWORD_REQUIRED,
            status_code=401,
        )


class InvalidPasswordError(FileVaultException):

    def __init__(self):
        super().__init__(
            "Incorrect password for this share link",
            ErrorCode.INVALID_PASSWORD,
            status_code=401,
        )


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class TokenGenerationExhaustedError(FileVaultException):

    def __init__(self, attempts: int):
        super().__init__(
            "Could not generate a unique share token, try again",
            ErrorCode.TOKEN_GENERATION_EXHAUSTED,
            status_code=503,
            details={"attempts": attempts},
        )


class ExternalStoreFailure(FileVaultException):
    """The database or the object store failed underneath an operation."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.EXTERNAL_STORE_FAILURE,
            status_code=502,
            details=details,
        )
