"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import uuid
from datetime import datetime

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://healthtour.example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for domain validation errors (missing field, out-of-range value, bad date range)."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {"code": "VALIDATION_FAILED", "retryable": False}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "code": "NOT_FOUND",
            "resource_type": resource_type,
            "retryable": False,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class CapacityFullError(ConflictError):
    """Exception when a package has no remaining capacity."""

    def __init__(self, package_id: str, current_bookings: int, max_capacity: int):
        super().__init__(
            detail=(
                f"Package {package_id} is fully booked "
                f"({current_bookings}/{max_capacity})"
            ),
            conflicting_resource={
                "package_id": package_id,
                "current_bookings": current_bookings,
                "max_capacity": max_capacity,
            }
        )
        self.problem_details.update({
            "code": "FULL",
            "retryable": False
        })


class DuplicateBookingNumberError(ConflictError):
    """Exception when a booking number is already taken."""

    def __init__(self, booking_number: str, attempts: int = 1):
        super().__init__(
            detail=f"Booking number {booking_number} is already in use",
            conflicting_resource={"booking_number": booking_number}
        )
        self.problem_details.update({
            "code": "DUPLICATE_BOOKING_NUMBER",
            "attempts": attempts,
            "retryable": True
        })


class DuplicateReviewError(ConflictError):
    """Exception when a user reviews the same package twice."""

    def __init__(self, package_id: str, user_id: str, review_id: str):
        super().__init__(
            detail="You have already reviewed this package",
            conflicting_resource={
                "package_id": package_id,
                "user_id": user_id,
                "review_id": review_id,
            }
        )
        self.problem_details.update({
            "code": "DUPLICATE_REVIEW",
            "retryable": False
        })


class InvalidStatusTransitionError(ConflictError):
    """Exception when a booking status change is not in the transition table."""

    def __init__(self, booking_id: str, current_status: str, target_status: str):
        super().__init__(
            detail=(
                f"Booking {booking_id} cannot move from "
                f"'{current_status}' to '{target_status}'"
            ),
            conflicting_resource={
                "booking_id": booking_id,
                "current_status": current_status,
                "target_status": target_status,
            }
        )
        self.problem_details.update({
            "code": "INVALID_TRANSITION",
            "retryable": False
        })


class InvalidStatusError(ProblemDetailsException):
    """Exception when a requested booking status is not a recognized state."""

    def __init__(self, status: str, allowed: list[str]):
        super().__init__(
            status_code=400,
            title="Invalid Status",
            detail=f"'{status}' is not a recognized booking status",
            type_uri=f"{PROBLEM_BASE_URI}/invalid-status",
            extensions={
                "code": "INVALID_STATUS",
                "allowed_statuses": allowed,
                "retryable": False,
            },
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as a 422 problem with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Request Validation Failed",
            "status": 422,
            "detail": "The request body or parameters failed validation",
            "instance": str(request.url),
            "violations": violations,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )
