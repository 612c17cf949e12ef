from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    MISCONFIGURED_SERVER = "misconfigured_server"
    OTP_GENERATION_FAILED = "otp_generation_failed"
    IDENTITY_DELETION_FAILED = "identity_deletion_failed"
    DELIVERY_FAILED = "delivery_failed"
    # Swallowed during account deletion, never rendered.
    LISTING_FAILED = "listing_failed"
    UNEXPECTED_SERVER_ERROR = "unexpected_server_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.MISCONFIGURED_SERVER: 500,
    ErrorKind.OTP_GENERATION_FAILED: 500,
    ErrorKind.IDENTITY_DELETION_FAILED: 500,
    ErrorKind.DELIVERY_FAILED: 502,
    ErrorKind.LISTING_FAILED: 500,
    ErrorKind.UNEXPECTED_SERVER_ERROR: 500,
}


class HandlerError(Exception):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.details = details
        self.error = error
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class UpstreamError(Exception):
    """A call to Supabase or the email provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(self.message)
