"""
Error response formatting and logging.
Every error leaves the API as ``{"error": {"code", "message", "timestamp", "request_id", "details"?}}``.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from app.utils.exceptions import APIException, StoreError, ValidationError
import logging
import uuid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Status codes for error codes carried by result values instead of exceptions
RESULT_ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "STORE_ERROR": status.HTTP_502_BAD_GATEWAY,
}


class ErrorHandlerService:
    """
    Turns exceptions and error results into structured JSON responses.
    Client faults are logged as warnings, store and unexpected faults as errors.
    """

    @staticmethod
    def format_error_response(
        error_code: str,
        message: str,
        details: Optional[List[Dict[str, Any]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the error envelope.

        Args:
            error_code: Machine-readable code such as ``STORE_ERROR``
            message: Human-readable message
            details: Optional per-field details
            request_id: Optional request identifier for tracking

        Returns:
            Error envelope dictionary
        """
        body: Dict[str, Any] = {
            "code": error_code,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        if details:
            body["details"] = details
        if request_id:
            body["request_id"] = request_id
        return {"error": body}

    @staticmethod
    def handle_api_exception(
        exception: APIException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Respond to an APIException with its own status and code."""
        request_id = ErrorHandlerService._request_id(request)
        error_code = exception.error_code or "API_ERROR"

        log = logger.error if isinstance(exception, StoreError) else logger.warning
        log(
            f"{error_code} [{request_id}] {exception.status_code}: {exception.detail}",
            extra=ErrorHandlerService._log_context(request, request_id, status_code=exception.status_code)
        )

        details = exception.field_errors if isinstance(exception, ValidationError) else None
        return JSONResponse(
            status_code=exception.status_code,
            content=ErrorHandlerService.format_error_response(error_code, exception.detail, details, request_id),
            headers=exception.headers
        )

    @staticmethod
    def handle_result_error(
        error_code: str,
        message: str,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Respond to an operation that reported failure as a result value.

        Args:
            error_code: ``VALIDATION_ERROR`` or ``STORE_ERROR``
            message: Error message from the result
            request: Optional FastAPI request object

        Returns:
            JSON response with 422 for validation and 502 for store failures
        """
        request_id = ErrorHandlerService._request_id(request)
        status_code = RESULT_ERROR_STATUS.get(error_code, status.HTTP_400_BAD_REQUEST)

        logger.warning(
            f"{error_code} [{request_id}] {status_code}: {message}",
            extra=ErrorHandlerService._log_context(request, request_id, status_code=status_code)
        )

        return JSONResponse(
            status_code=status_code,
            content=ErrorHandlerService.format_error_response(error_code, message, request_id=request_id)
        )

    @staticmethod
    def handle_validation_error(
        exception: Any,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Respond to request or model validation errors with per-field details.
        Accepts anything exposing pydantic's ``errors()``.
        """
        request_id = ErrorHandlerService._request_id(request)

        details = [
            {
                "field": " -> ".join(str(loc) for loc in error.get("loc", ())),
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exception.errors()
        ]

        logger.warning(
            f"VALIDATION_ERROR [{request_id}]: {len(details)} field errors",
            extra=ErrorHandlerService._log_context(request, request_id, validation_errors=details)
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorHandlerService.format_error_response(
                "VALIDATION_ERROR", "Request validation failed", details, request_id
            )
        )

    @staticmethod
    def handle_database_error(
        exception: SQLAlchemyError,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """
        Respond to a database error that escaped the service layer.
        Constraint violations are 409; everything else is a store fault (502).
        Driver messages are logged, never returned.
        """
        request_id = ErrorHandlerService._request_id(request)

        if isinstance(exception, IntegrityError):
            error_code = "INTEGRITY_ERROR"
            status_code = status.HTTP_409_CONFLICT
            message = ErrorHandlerService._describe_integrity_error(exception)
        else:
            error_code = "STORE_ERROR"
            status_code = status.HTTP_502_BAD_GATEWAY
            message = "Store operation failed"

        logger.error(
            f"{error_code} [{request_id}]: {exception}",
            extra=ErrorHandlerService._log_context(
                request, request_id, exception_type=type(exception).__name__
            ),
            exc_info=True
        )

        return JSONResponse(
            status_code=status_code,
            content=ErrorHandlerService.format_error_response(error_code, message, request_id=request_id)
        )

    @staticmethod
    def handle_http_exception(
        exception: HTTPException,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Respond to framework HTTP errors such as unknown routes."""
        request_id = ErrorHandlerService._request_id(request)

        logger.warning(
            f"HTTP_{exception.status_code} [{request_id}]: {exception.detail}",
            extra=ErrorHandlerService._log_context(request, request_id, status_code=exception.status_code)
        )

        return JSONResponse(
            status_code=exception.status_code,
            content=ErrorHandlerService.format_error_response(
                f"HTTP_{exception.status_code}", str(exception.detail), request_id=request_id
            ),
            headers=exception.headers
        )

    @staticmethod
    def handle_unexpected_error(
        exception: Exception,
        request: Optional[Request] = None
    ) -> JSONResponse:
        """Respond to anything unhandled with a generic 500."""
        request_id = ErrorHandlerService._request_id(request)

        logger.error(
            f"INTERNAL_SERVER_ERROR [{request_id}]: {type(exception).__name__} - {exception}",
            extra=ErrorHandlerService._log_context(
                request, request_id, exception_type=type(exception).__name__
            ),
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorHandlerService.format_error_response(
                "INTERNAL_SERVER_ERROR",
                "An unexpected error occurred. Please try again later.",
                request_id=request_id
            )
        )

    @staticmethod
    def _request_id(request: Optional[Request]) -> str:
        """Reuse the caller's request id header, or generate a short one."""
        if request is not None:
            supplied = request.headers.get(REQUEST_ID_HEADER)
            if supplied:
                return supplied
        return uuid.uuid4().hex[:8]

    @staticmethod
    def _log_context(request: Optional[Request], request_id: str, **fields: Any) -> Dict[str, Any]:
        context = {
            "request_id": request_id,
            "path": request.url.path if request else None,
        }
        context.update(fields)
        return context

    @staticmethod
    def _describe_integrity_error(exception: IntegrityError) -> str:
        error_msg = str(exception.orig).lower()
        if "unique" in error_msg:
            return "Constraint violation: duplicate value for unique field"
        if "foreign key" in error_msg:
            return "Constraint violation: referenced record does not exist"
        if "not null" in error_msg:
            return "Constraint violation: required field cannot be empty"
        return "Data integrity constraint violation"
