"""Error taxonomy shared by the click path, admin channel and background tasks."""


class TidePoolError(Exception):
    """Base class for tide pool errors."""


class ValidationError(TidePoolError):
    """Malformed or missing admin command argument."""

    def __init__(self, usage: str):
        super().__init__(usage)
        self.usage = usage


class AuthorizationError(TidePoolError):
    """Message from someone other than the configured operator."""


class ConflictError(TidePoolError):
    """Request rejected because of the current state; nothing was changed."""

    status_code = 409
    code = "conflict"

    def to_payload(self):
        return {"error": self.code}


class AlreadyClickedError(ConflictError):
    status_code = 429
    code = "already_clicked"


class LockedError(ConflictError):
    status_code = 423
    code = "locked"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self):
        return {"error": self.code, "message": self.message}


class TransientStoreError(TidePoolError):
    """Durable store unavailable or timed out."""


class ExpiredConfirmationError(TidePoolError):
    """Confirmation token arrived after the pending command expired."""

    def __init__(self, command: str):
        super().__init__(f"Confirmation for '{command}' expired")
        self.command = command
