"""
Custom exceptions for the application.
"""


class Voice2TextException(Exception):
    """Base exception for Voice2Text application."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


# ═══════════════════════════════════════════════════════════════════════════
# AUTHENTICATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class AuthenticationError(Voice2TextException):
    """Raised when a request cannot be authenticated."""
    pass


class InvalidTokenError(AuthenticationError):
    """Raised when a bearer token is invalid or expired."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# TRANSCRIPTION EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class TranscriptionError(Voice2TextException):
    """Raised when the speech-to-text service fails."""
    pass


class TransientTranscriptionError(TranscriptionError):
    """Upstream failure that may succeed on another attempt (network, 429, 5xx)."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# STORAGE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class StorageError(Voice2TextException):
    """Raised when the transcript store cannot be read or written."""
    pass
