"""
Service layer for business logic implementation.
Contains services for property consistency, photo reconciliation, and error handling.
"""

from .property import PropertyService, PropertyResult
from .reconciler import PhotoReconciler
from .error_handler import ErrorHandlerService

__all__ = [
    "PropertyService",
    "PropertyResult",
    "PhotoReconciler",
    "ErrorHandlerService"
]
