# app/core/errors.py
"""
Error taxonomy for the checkout and payment flows.

Every error is an HTTPException, so services raise them directly and
FastAPI renders them without extra handlers. The response body is:

    {"detail": {"code": "<ErrorCode>", "message": "...", ...context}}

The frontend keys off `code`; `context` carries data the UI needs
(e.g. which kit blocked a checkout).
"""
from typing import Any

from fastapi import HTTPException, status

CONTACT_SUPPORT_MESSAGE = (
    "We could not confirm your payment. Please contact support "
    "with your payment reference."
)


class AppException(HTTPException):
    code: str = "AppError"
    default_status: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "An error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        **context: Any,
    ):
        self.message = message or self.default_message
        self.context = context
        super().__init__(
            status_code=status_code or self.default_status,
            detail={"code": self.code, "message": self.message, **context},
            headers=headers,
        )


class InvalidAddress(AppException):
    code = "InvalidAddress"
    default_message = "Shipping address is too short"


class EmptyCart(AppException):
    code = "EmptyCart"
    default_message = "Cart is empty"


class KitUnavailable(AppException):
    code = "KitUnavailable"
    default_message = "Kit is not available"


class InsufficientStock(AppException):
    code = "InsufficientStock"

    def __init__(
        self,
        kit_id: Any,
        kit_name: str | None,
        available: int,
        requested: int,
        contact_support: bool = False,
    ):
        message = (
            f"Not enough stock for {kit_name or kit_id} "
            f"(have {available}, requested {requested})"
        )
        if contact_support:
            message = f"{message}. {CONTACT_SUPPORT_MESSAGE}"
        super().__init__(
            message,
            kit_id=str(kit_id),
            kit_name=kit_name,
            available=available,
            requested=requested,
        )


class Unauthenticated(AppException):
    code = "Unauthenticated"
    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppException):
    code = "Forbidden"
    default_status = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class MissingMetadata(AppException):
    code = "MissingMetadata"
    default_message = (
        "Payment session is missing order details. " + CONTACT_SUPPORT_MESSAGE
    )


class AuthenticationFailure(AppException):
    """Bad webhook signature. The message never says why."""

    code = "AuthenticationFailure"
    default_message = "Invalid webhook payload"


class NotFoundException(AppException):
    code = "NotFound"
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InvalidStatusTransition(AppException):
    code = "InvalidStatusTransition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Invalid status transition: {current} -> {requested}",
            current=current,
            requested=requested,
        )


class TransientStorageFailure(AppException):
    code = "TransientStorageFailure"
    default_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Temporary storage failure, nothing was saved. Please retry."


class PaymentProviderError(AppException):
    code = "PaymentProviderError"
    default_status = status.HTTP_502_BAD_GATEWAY
    default_message = CONTACT_SUPPORT_MESSAGE
