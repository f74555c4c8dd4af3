from __future__ import annotations


class ComercialError(Exception):
    """Base class for domain errors surfaced to API callers."""

    code = "COMERCIAL_ERROR"
    status_code = 400

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = dict(details)

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class ConfigurationError(ComercialError):
    """Required configuration is missing or inactive. Never defaulted."""

    code = "CONFIGURATION_ERROR"
    status_code = 409


class ValidationError(ComercialError, ValueError):
    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidTransitionError(ComercialError, ValueError):
    code = "INVALID_TRANSITION"
    status_code = 409


class NotFoundError(ComercialError):
    code = "NOT_FOUND"
    status_code = 404
