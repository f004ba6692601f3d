"""
PinPad errors.

Every error carries a short ``message`` meant to be shown to the user as-is.
None of them is fatal: callers at the boundary (CLI, REST API) catch
``PinPadError`` and surface the message.
"""


class PinPadError(Exception):
    """Base exception for PinPad errors."""

    default_message = "Something went wrong."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCode(PinPadError):
    """Raised when a session PIN is not exactly six digits."""

    default_message = "Invalid PIN"


class ConnectFailed(PinPadError):
    """Raised when the transport cannot reach (or open) a session address."""

    default_message = "Could not connect. Check PIN."


class NoPeer(PinPadError):
    """Raised when an operation needs a live connection and there is none."""

    default_message = "No peer connected. Wait for someone to join."


class NotFound(PinPadError):
    """Raised when no stored item exists for a share code."""

    default_message = "Code not found."


class Expired(PinPadError):
    """Raised when a stored item exists but is past its expiry."""

    default_message = "This code has expired."


class StoreUnavailable(PinPadError):
    """Raised when the share store backend fails."""

    default_message = "Share store unavailable. Try again later."


class ProtocolError(PinPadError):
    """Raised when a frame on the session connection cannot be decoded."""

    default_message = "Received a malformed message."
