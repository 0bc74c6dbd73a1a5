"""
Error taxonomy for the API.

Handlers raise these; ``main`` renders them as ``{"error": message}`` with the
matching status code.
"""

from typing import Optional


class ApiError(Exception):
    status_code = 500
    message = "An error occurred while processing your request."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class BadRequestError(ApiError):
    status_code = 400
    message = "Bad request"


class InvalidIdError(BadRequestError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"{value} is not a valid ObjectId")


class AuthError(ApiError):
    status_code = 401
    message = "Not authorized"

    # malformed | signature-invalid | expired | missing
    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    message = "Already exists"


class StoreError(ApiError):
    status_code = 500


class StoreConnectionError(StoreError):
    message = "Could not connect to the database"
