"""
errors.py — Exception types for the identification pipeline.

Lookup failures split into two families:
  - recoverable (NotFoundError, BadRequestError): the orchestrator moves on
    to the next strategy
  - unusable backend (ServerError, TransportError): counted, and if every
    strategy ends this way the search raises SearchUnavailableError
"""

from typing import Optional


class CardScannerError(Exception):
    """Base class for everything raised by the scanner modules."""


class RecognitionError(CardScannerError):
    """The recognizer could not read the frame. Treated as 'no hint'."""


# ─────────────────────────────────────────────────────────────
# LOOKUP
# ─────────────────────────────────────────────────────────────

class LookupFailure(CardScannerError):
    recoverable = False


class NotFoundError(LookupFailure):
    recoverable = True


class BadRequestError(LookupFailure):
    recoverable = True


class ServerError(LookupFailure):
    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"HTTP {status_code}")


class TransportError(LookupFailure):
    """Network failure, timeout, or a response body we could not decode."""


class SearchUnavailableError(CardScannerError):
    """Every strategy failed with a server or transport error."""

    def __init__(self, message: str, attempted_queries=()):
        self.attempted_queries = tuple(attempted_queries)
        super().__init__(message)


# ─────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────

class SessionBusyError(CardScannerError):
    """A frame or search is already in flight."""
