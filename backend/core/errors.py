from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for failures reported by the ledger API.

    Each subclass maps to one HTTP status; the handler in ``main`` renders
    ``{"error": message, "details": {...}}``.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(LedgerError):
    """Malformed wallet address or transaction hash."""

    status_code = 400


class InvalidBurn(LedgerError):
    """The on-chain transaction does not match the claimed burn."""

    status_code = 400


class OracleUnavailable(LedgerError):
    """Chain indexer unreachable, rate-limited or out of retries."""

    status_code = 502


class InternalError(LedgerError):
    status_code = 500
