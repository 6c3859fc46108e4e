from fastapi import APIRouter, Depends, HTTPException, status
from beanie import PydanticObjectId
from typing import List, Optional

from src.models.userModel import User
from src.models.providerModel import Provider
from src.models.serviceModel import Service
from src.schemas.providerSchema import (
    ProviderApplicationCreate,
    ProviderApplicationRead,
    ProviderRead,
    ServiceCreate,
    ServiceRead,
)
from src.crud.userService import current_active_user
from src.crud.providerService import ProviderService
from src.crud.catalogService import CatalogService
from src.dependencies.roleDependencies import current_provider

router = APIRouter()


# ============= PROVIDER ONBOARDING =============
@router.post("/provider/apply", response_model=ProviderApplicationRead, status_code=status.HTTP_201_CREATED,
             tags=["provider"])
async def apply_to_be_provider(
        data: ProviderApplicationCreate,
        current_user: User = Depends(current_active_user)
):
    """Submit a provider application for admin review"""
    try:
        return await ProviderService.submit_application(current_user, data.business_name, data.handle, data.bio)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error submitting application: {str(e)}"
        )


@router.get("/provider/application", response_model=Optional[ProviderApplicationRead], tags=["provider"])
async def get_my_application(current_user: User = Depends(current_active_user)):
    """The caller's most recent application, or null"""
    return await ProviderService.latest_application(current_user.id)


@router.get("/provider/me", response_model=ProviderRead, tags=["provider"])
async def get_my_provider(provider: Provider = Depends(current_provider)):
    return provider


# ============= SERVICES =============
@router.get("/services", response_model=List[ServiceRead], tags=["services"])
async def list_services(
        provider_id: Optional[PydanticObjectId] = None,
        skip: int = 0,
        limit: int = 20
):
    """Active services, optionally filtered by provider"""
    return await CatalogService.list_active(provider_id=provider_id, skip=skip, limit=limit)


@router.get("/services/{service_id}", response_model=ServiceRead, tags=["services"])
async def get_service(service_id: PydanticObjectId):
    service = await Service.get(service_id)
    if not service or not service.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


@router.get("/provider/services", response_model=List[ServiceRead], tags=["services"])
async def list_my_services(provider: Provider = Depends(current_provider)):
    return await CatalogService.list_for_provider(provider)


@router.post("/provider/services", response_model=ServiceRead, status_code=status.HTTP_201_CREATED,
             tags=["services"])
async def create_service(
        data: ServiceCreate,
        provider: Provider = Depends(current_provider)
):
    """Create a bookable service (providers only)"""
    try:
        return await CatalogService.create_service(provider, data)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.patch("/provider/services/{service_id}/active", response_model=ServiceRead, tags=["services"])
async def set_service_active(
        service_id: PydanticObjectId,
        is_active: bool,
        provider: Provider = Depends(current_provider)
):
    return await CatalogService.set_active(provider, service_id, is_active)
