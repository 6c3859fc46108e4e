from datetime import datetime
from typing import List, Optional
from beanie import PydanticObjectId
from fastapi import HTTPException, status

from src.models.providerModel import Provider
from src.models.serviceModel import Service
from src.schemas.providerSchema import ServiceCreate

import logging

logger = logging.getLogger(__name__)


class CatalogService:
    """Service layer for the services a provider offers"""

    @staticmethod
    async def create_service(provider: Provider, data: ServiceCreate) -> Service:
        """Create a new bookable service for the provider"""
        service = Service(provider_id=provider.id, **data.model_dump())
        await service.insert()
        logger.info(f"Service {service.id} created by provider {provider.id}")
        return service

    @staticmethod
    async def list_active(provider_id: Optional[PydanticObjectId] = None, skip: int = 0,
                          limit: int = 20) -> List[Service]:
        """Active services, optionally for one provider"""
        query = {"is_active": True}
        if provider_id:
            query["provider_id"] = provider_id
        return await Service.find(query).sort("-created_at").skip(skip).limit(limit).to_list()

    @staticmethod
    async def list_for_provider(provider: Provider) -> List[Service]:
        return await Service.find({"provider_id": provider.id}).sort("-created_at").to_list()

    @staticmethod
    async def set_active(provider: Provider, service_id: PydanticObjectId, is_active: bool) -> Service:
        service = await Service.get(service_id)
        if not service:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
        if service.provider_id != provider.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your service")

        service.is_active = is_active
        service.updated_at = datetime.utcnow()
        await service.save()
        return service
