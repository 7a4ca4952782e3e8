"""
Tokenator - Errors

Every failure the library raises carries a stable ``code`` string so
callers can branch on it without parsing messages.
"""

from typing import Optional


class TokenatorError(Exception):
    """Base error: a stable code plus a human readable message."""
    code = "ERR_TOKENATOR"

    def __init__(self, message: str, code: Optional[str] = None):
        if code:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")


class ValidationError(TokenatorError):
    """Call arguments rejected before any network call."""
    code = "ERR_VALIDATION"


class ConfigurationError(TokenatorError):
    """Invalid TokenConfiguration / Settings."""
    code = "ERR_CONFIGURATION"


class RelayError(TokenatorError):
    """Relay answered with ``status: error`` (or a non-2xx response)."""
    code = "ERR_RELAY"

    def __init__(self, message: str, code: Optional[str] = None,
                 status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, code)


class WalletActionFailure(TokenatorError):
    """The wallet could not construct or sign a transaction."""
    code = "ERR_WALLET_ACTION"


class TransactionConstructionFailed(WalletActionFailure):
    code = "ERR_TRANSACTION_CONSTRUCTION"


class MissingBundle(WalletActionFailure):
    """Token has no transaction bundle, so it cannot be spent."""
    code = "ERR_MISSING_BUNDLE"


class DecodeFailure(TokenatorError):
    """A single listed output could not be decoded or decrypted."""
    code = "ERR_DECODE"


class TimeoutFailure(TokenatorError):
    code = "ERR_TIMEOUT"


class OverlayError(TokenatorError):
    code = "ERR_OVERLAY"
