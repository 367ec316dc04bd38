"""
Error taxonomy shared by the gateway, the editor and the views.

Each error carries the HTTP status the API answers with; main.py turns
them into ``{"detail": message}`` responses.
"""
from typing import Optional


class LMSError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(LMSError):
    """Invalid credentials or missing session; the client goes back to login"""
    status_code = 401


class PermissionDeniedError(LMSError):
    """Advisory role check failed before any store call was made"""
    status_code = 403


class NotFoundError(LMSError):
    status_code = 404


class ConfirmationRequiredError(LMSError):
    status_code = 400


class StoreError(LMSError):
    """The store rejected or failed a request; message is the store's own"""
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class UniquenessViolation(StoreError):
    UNIQUE_VIOLATION = "23505"

    def __init__(self, message: str):
        super().__init__(message, code=self.UNIQUE_VIOLATION)


class StaleViewError(LMSError):
    # nginx's "client closed request"
    status_code = 499
