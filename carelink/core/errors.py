"""HTTP errors raised by the service layer.

Each class maps one failure category to a status code so routers and
services can raise them directly and FastAPI renders ``{"detail": ...}``.
"""

from fastapi import HTTPException, status


class AuthenticationRequired(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class PermissionDenied(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationError(HTTPException):
    """Bad user input. Raised before anything is written or sent out."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class BackendError(HTTPException):
    """The database or the blob store failed. The operation is abandoned."""

    def __init__(self, detail: str = "Service temporarily unavailable. Please try again."):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class ExternalServiceError(HTTPException):
    def __init__(self, detail: str, reply: str | None = None):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
        self.reply = reply
