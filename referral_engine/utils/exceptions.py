"""
Exception handling utilities.

Defines engine exception types and categories for proper error handling.
"""

from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)


class ReferralEngineError(Exception):
    """Base class for engine errors."""
    pass


class InvalidEarningEventError(ReferralEngineError, ValueError):
    """Raised when a reported earning event fails validation."""
    pass


class UntrustedEarningSourceError(ReferralEngineError):
    """Raised when an earning type is not allow-listed for distribution."""
    pass


class LedgerUnavailableError(ReferralEngineError):
    """Raised when the balance/ledger store cannot be reached at all."""
    pass


# Exception categories based on handling strategy

# Store unreachable - fatal for the whole event
STORE_UNAVAILABLE = (
    OperationalError,
    InterfaceError,
)

# Must log but can continue - isolated to one level or one milestone
MUST_LOG = (
    SQLAlchemyError,
)

# Must raise - critical security or validation issues
MUST_RAISE = (
    ValueError,  # Validation errors
    TypeError,  # Type errors in critical paths
    UntrustedEarningSourceError,
)


def is_store_unavailable(exc: Exception) -> bool:
    """
    Check if exception means the database cannot be reached.

    Args:
        exc: Exception to check

    Returns:
        True if the store is unreachable
    """
    return isinstance(exc, STORE_UNAVAILABLE)


def is_connection_lost(exc: Exception) -> bool:
    """
    Check if a database error invalidated the connection mid-operation.

    Args:
        exc: Exception to check

    Returns:
        True if the connection is gone and nothing further can be written
    """
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG)


def must_raise(exc: Exception) -> bool:
    """
    Check if exception must be raised.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be raised
    """
    return isinstance(exc, MUST_RAISE)
