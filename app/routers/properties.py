"""
Property API endpoints for listing, CRUD, view counting and photo reconciliation.
Reads are public; mutations require a bearer token and ownership (or admin role).
"""

from fastapi import APIRouter, Body, Depends, Query, Path, Request, status
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.services.property import PropertyService
from app.services.reconciler import PhotoReconciler
from app.services.error_handler import ErrorHandlerService
from app.schemas.property import PropertyResponse, PropertyListResponse
from app.schemas.photo import PhotoResponse, ReconcileResponse
from app.utils.auth import TokenPayload
from app.utils.dependencies import (
    get_current_user,
    get_current_admin_user,
    get_property_service,
    get_photo_reconciler,
    require_property_owner
)
from app.utils.exceptions import PropertyNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["Properties"])


@router.get(
    "",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="List properties",
    description="Get a paginated list of properties, newest first, with optional filters"
)
async def list_properties(
    property_type: Optional[str] = Query(None, description="Property type filter"),
    city: Optional[str] = Query(None, description="Case-insensitive partial city match"),
    min_price: Optional[str] = Query(None, description="Minimum price filter"),
    max_price: Optional[str] = Query(None, description="Maximum price filter"),
    status_filter: Optional[str] = Query(None, alias="status", description="Status filter (defaults to active)"),
    owner_id: Optional[str] = Query(None, description="Owner filter"),
    page: Optional[str] = Query(None, description="Page number (starts from 1)"),
    limit: Optional[str] = Query(None, description="Number of properties per page"),
    property_service: PropertyService = Depends(get_property_service)
) -> Dict[str, Any]:
    """
    Get paginated list of properties.

    Page and limit are clamped rather than rejected: page to at least 1 and
    limit to [1, 100].
    """
    filters = {
        "property_type": property_type,
        "city": city,
        "min_price": min_price,
        "max_price": max_price,
        "status": status_filter,
        "owner_id": owner_id,
    }
    return await property_service.get_properties(filters, page=page, limit=limit)


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new property",
    description="Create a property and link its image URLs as photos in one transaction"
)
async def create_property(
    request: Request,
    body: Dict[str, Any] = Body(..., examples=[{
        "title": "Test Property",
        "address": "123 Test Lane",
        "city": "Testville",
        "price": "1000.00",
        "images": ["https://cdn.example.com/prop/1.jpg"]
    }]),
    current_user: TokenPayload = Depends(get_current_user),
    property_service: PropertyService = Depends(get_property_service)
):
    """
    Create a new property owned by the authenticated user.

    Returns 422 for invalid input and 502 when the atomic store procedure fails.
    """
    result = await property_service.create_property(body, current_user.user_id)

    if not result.ok:
        return ErrorHandlerService.handle_result_error(result.error_code, result.error, request)

    return result.data


@router.post(
    "/reconcile-photos",
    response_model=ReconcileResponse,
    status_code=status.HTTP_200_OK,
    summary="Reconcile orphan photos",
    description="Link orphan photos to the property whose images list contains their URL. Admin only."
)
async def reconcile_photos(
    current_user: TokenPayload = Depends(get_current_admin_user),
    reconciler: PhotoReconciler = Depends(get_photo_reconciler)
) -> ReconcileResponse:
    reconciled = await reconciler.reconcile_orphan_photos()
    logger.info(f"Photo reconciliation triggered by {current_user.user_id}: {len(reconciled)} linked")
    return ReconcileResponse(success=True, reconciled=reconciled, count=len(reconciled))


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Get property details",
    description="Get detailed information about a specific property"
)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    property_service: PropertyService = Depends(get_property_service)
) -> Dict[str, Any]:
    """
    Get detailed information about a specific property.

    Raises:
        PropertyNotFoundError: If property doesn't exist
    """
    property_data = await property_service.get_property_by_id(property_id)
    if property_data is None:
        raise PropertyNotFoundError(str(property_id))
    return property_data


@router.get(
    "/{property_id}/photos",
    response_model=List[PhotoResponse],
    status_code=status.HTTP_200_OK,
    summary="List property photos",
    description="Get the photo rows linked to a property"
)
async def get_property_photos(
    property_id: UUID = Path(..., description="Property ID"),
    property_service: PropertyService = Depends(get_property_service)
) -> List[Dict[str, Any]]:
    if await property_service.get_property_by_id(property_id) is None:
        raise PropertyNotFoundError(str(property_id))
    return await property_service.get_property_photos(property_id)


@router.patch(
    "/{property_id}",
    response_model=PropertyResponse,
    status_code=status.HTTP_200_OK,
    summary="Update property",
    description="Partially update a property. Only the owner or an admin can update."
)
async def update_property(
    property_id: UUID = Path(..., description="Property ID"),
    patch: Dict[str, Any] = Body(...),
    current_user: TokenPayload = Depends(require_property_owner),
    property_service: PropertyService = Depends(get_property_service)
) -> Dict[str, Any]:
    """
    Update property details.

    Raises:
        PropertyNotFoundError: If property doesn't exist
        PropertyOwnershipError: If the user does not own the property
        ValidationError: If update data is invalid
    """
    requester_id = None if current_user.is_admin else current_user.user_id
    return await property_service.update_property(property_id, patch, requester_id)


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete property",
    description="Delete a property and its photo rows. Only the owner or an admin can delete."
)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: TokenPayload = Depends(require_property_owner),
    property_service: PropertyService = Depends(get_property_service)
) -> None:
    requester_id = None if current_user.is_admin else current_user.user_id
    await property_service.delete_property(property_id, requester_id)


@router.post(
    "/{property_id}/view",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Record property view",
    description="Increment the view counter. Never fails because of the counter."
)
async def record_property_view(
    property_id: UUID = Path(..., description="Property ID"),
    property_service: PropertyService = Depends(get_property_service)
) -> None:
    await property_service.record_property_view(property_id)
