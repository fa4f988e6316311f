# promptcraft/errors.py
"""
Error taxonomy shared by the store, the LLM layer and the workflow.
Each class carries the HTTP status it maps to at the request boundary; the
message is what the client sees, so keep it free of internal detail.
"""

E_VALIDATION = "E_VALIDATION"
E_NOT_FOUND = "E_NOT_FOUND"
E_UPSTREAM = "E_UPSTREAM"
E_STORAGE = "E_STORAGE"


class EnhancementError(Exception):
    status_code = 500
    error_code = "E_INTERNAL"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class ValidationError(EnhancementError):
    status_code = 400
    error_code = E_VALIDATION


class NotFoundError(EnhancementError):
    status_code = 404
    error_code = E_NOT_FOUND

    def __init__(self, message: str = "Enhancement not found"):
        super().__init__(message)


class UpstreamError(EnhancementError):
    """LLM provider failed or returned something we could not use."""
    status_code = 500
    error_code = E_UPSTREAM


class StorageError(EnhancementError):
    status_code = 500
    error_code = E_STORAGE
