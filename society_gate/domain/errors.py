"""Typed failures raised by the verification core.

Every error carries an ``error_kind`` and the HTTP status the API layer maps it
to. Nothing in the domain builds responses; ``main.py`` converts these once.
"""


class VerificationError(Exception):
    error_kind = "VerificationError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "status": self.status_code,
            "error_kind": self.error_kind,
            "message": self.message,
        }


class NotFound(VerificationError):
    error_kind = "NotFound"
    status_code = 404


class DuplicateCredential(VerificationError):
    error_kind = "DuplicateCredential"
    status_code = 409


class IllegalTransition(VerificationError):
    error_kind = "IllegalTransition"
    status_code = 409


class AlreadyTerminal(VerificationError):
    error_kind = "AlreadyTerminal"
    status_code = 409


class InvalidState(VerificationError):
    error_kind = "InvalidState"
    status_code = 409


class ValidationError(VerificationError):
    error_kind = "ValidationError"
    status_code = 422


class Unauthorized(VerificationError):
    error_kind = "Unauthorized"
    status_code = 403
