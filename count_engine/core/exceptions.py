from typing import Optional
from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class AuthenticationError(BaseAppException):
    def __init__(self, detail: str = "Missing caller identity or organization"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

class ValidationError(BaseAppException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InitializationError(BaseAppException):
    """Template or catalog could not be read while seeding a count"""
    def __init__(self, detail: str = "Failed to initialize count items"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)

class DuplicateValueError(BaseAppException):
    """A unique identifier (SKU, barcode) is already taken inside the organization"""
    def __init__(self, detail: str = "Duplicate value", field: Optional[str] = None):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
        self.field = field


def error_message(error: Exception) -> str:
    """Human readable message for any exception, without the status prefix"""
    if isinstance(error, HTTPException):
        return str(error.detail)
    return str(error) or error.__class__.__name__
