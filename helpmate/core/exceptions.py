from typing import Optional, Any

class HelpMateError(Exception):
    """
    Base exception for HelpMate application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class ResourceNotFoundError(HelpMateError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class AuthenticationError(HelpMateError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class PermissionDeniedError(HelpMateError):
    """
    Raised when an authenticated user lacks access to a resource.
    """
    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(message, code="PERMISSION_DENIED", status_code=403, details=details)

class QuotaExceededError(HelpMateError):
    """
    Raised when a subscription's chat allowance is used up.
    """
    def __init__(self, message: str = "Chat limit reached", details: Optional[Any] = None):
        super().__init__(message, code="QUOTA_EXCEEDED", status_code=403, details=details)

class ValidationError(HelpMateError):
    """
    Raised when a request is well-formed but semantically invalid.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="BAD_REQUEST", status_code=400, details=details)

class ExternalServiceError(HelpMateError):
    """
    Raised when an external service (e.g., the LLM provider) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)
