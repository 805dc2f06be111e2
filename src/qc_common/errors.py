"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  3xxx: Listing
  4xxx: Offer
  9xxx: System

Every business error belongs to one of four families so callers can tell
"try again later" (InvalidStateError) from "not allowed" (ForbiddenError)
from "fix your input" (InvalidInputError) and from NotFoundError.
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Families ---

class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class InvalidStateError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 400)


class ForbiddenError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 403)


class InvalidInputError(AppError):
    def __init__(self, code: int, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(code, message, 400)
        self.errors = errors or []


# --- 1xxx: Auth/User ---

class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already registered", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid email or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


# --- 3xxx: Listing ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}")


class ListingNotOpenError(InvalidStateError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3002, f"Listing is not open: {listing_id}")


class OfferWindowEndedError(InvalidStateError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3003, f"Offer window has ended: {listing_id}")


class NotListingSellerError(ForbiddenError):
    def __init__(self, action: str = "accept an offer") -> None:
        super().__init__(3004, f"Only the listing seller can {action}")


class InvalidPricingWindowError(InvalidInputError):
    def __init__(self, detail: str) -> None:
        super().__init__(3005, f"Invalid pricing window: {detail}")


# --- 4xxx: Offer ---

class SelfBidError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(4001, "Sellers cannot bid on their own listing")


class OfferNotFoundError(NotFoundError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4002, f"Offer not found: {offer_id}")


class InvalidOfferAmountError(InvalidInputError):
    def __init__(self, amount: object) -> None:
        super().__init__(
            4003,
            f"Offer amount must be positive: {amount}",
            [{"field": "amount", "message": "must be greater than 0"}],
        )


# --- 9xxx: System ---

class RequestValidationFailedError(InvalidInputError):
    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(9003, "Request validation failed", errors)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
