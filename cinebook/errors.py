from typing import Optional


class CinebookError(Exception):
    """Base error for the booking flow; carries the HTTP status and a machine code."""

    status_code: int = 400
    code: str = "BOOKING_FLOW_ERROR"
    retryable: bool = False

    def __init__(self, message: str, redirect_to: Optional[str] = None):
        self.message = message
        self.redirect_to = redirect_to
        super().__init__(message)

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": self.message, "retryable": self.retryable}
        if self.redirect_to:
            out["redirect_to"] = self.redirect_to
        return out


class UserInputError(CinebookError):
    """Locally detected problem with what the user entered; no network call was made."""

    status_code = 400
    code = "INVALID_INPUT"
