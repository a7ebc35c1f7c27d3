"""Exception taxonomy for the tax engine.

Each error carries the HTTP status it maps to at the API boundary:

    InvalidInputError   → 400  (caller must fix the request)
    NotFoundError       → 404  (unsupported financial year / regime)
    ConfigurationError  → 500  (rule tables incomplete or malformed)
    PersistenceError    → never surfaced; the save step is best-effort
"""

from __future__ import annotations


class TaxEngineError(Exception):
    """Base class for all tax-engine errors."""

    status_code: int = 500
    code: str = "TAX_ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(TaxEngineError):
    status_code = 400
    code = "INVALID_INPUT"


class NotFoundError(TaxEngineError):
    status_code = 404
    code = "NOT_FOUND"


class ConfigurationError(TaxEngineError):
    status_code = 500
    code = "CONFIGURATION_ERROR"


class PersistenceError(TaxEngineError):
    status_code = 500
    code = "PERSISTENCE_ERROR"
