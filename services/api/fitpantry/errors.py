"""Domain errors for FitPantry.

Services raise these; ``main.py`` renders every ``FitPantryError`` as
``{"message": ..., **extra}`` with the error's status code. Owner scoping
means "does not exist" and "belongs to someone else" are both NotFoundError.
"""

from typing import Any, Optional


class FitPantryError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


class ValidationError(FitPantryError):
    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        extra = {"field": field} if field else {}
        super().__init__(message, **extra)
        self.field = field


class AuthError(FitPantryError):
    status_code = 401
    default_message = "Unauthorized"

    def __init__(self):
        # Never says why: no session and a bad session look the same.
        super().__init__(self.default_message)


class NotFoundError(FitPantryError):
    status_code = 404
    default_message = "Not found"


class ConflictError(FitPantryError):
    status_code = 409
    default_message = "Conflict"


class CredentialMissingError(FitPantryError):
    status_code = 400
    default_message = (
        "Gemini API key not configured. Please add your API key in your profile settings."
    )


class EncryptionError(FitPantryError):
    status_code = 500
    default_message = "Failed to encrypt API key"


class DecryptionError(FitPantryError):
    status_code = 500
    default_message = "Failed to decrypt API key"


class CompletionProviderError(FitPantryError):
    """Raised by the completion client; absorbed by the turn orchestrator."""

    status_code = 502
    default_message = "Completion provider failed"


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected at startup."""
