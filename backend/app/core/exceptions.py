# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the push dispatch backend.

These exceptions provide clear error messages that can be caught and
handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers={"WWW-Authenticate": "Bearer"},
        )


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Push-specific exceptions


class VapidConfigurationError(RuntimeError):
    """Raised at startup when VAPID key material is missing or unusable."""


class VapidSigningError(ServiceException):
    """Raised when a VAPID assertion cannot be produced."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="VAPID_SIGNING_FAILED", details=details)


class SubscriptionStoreError(ServiceException):
    """Raised when push subscriptions cannot be read from the store."""

    def __init__(self, message: str = "Failed to fetch subscriptions"):
        super().__init__(message=message, code="SUBSCRIPTION_STORE_ERROR")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
