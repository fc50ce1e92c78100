"""
API routes for model configuration.

Provides endpoints to get the configured models and provider status.
"""

import logging

from fastapi import APIRouter, Depends

from reeldocs.api.routes import get_services
from reeldocs.models.schemas import DefaultModelsResponse, ProviderStatus
from reeldocs.services.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("/default", response_model=DefaultModelsResponse)
async def get_default_models(
    services: ServiceContainer = Depends(get_services),
) -> DefaultModelsResponse:
    """
    Get the model used by each pipeline stage.

    Returns:
        DefaultModelsResponse with video, docs and translation models
    """
    settings = services.settings
    return DefaultModelsResponse(
        video=settings.video_model,
        docs=settings.docs_model,
        translation=settings.translation_model,
    )


@router.get("/providers", response_model=list[ProviderStatus])
async def get_providers(
    services: ServiceContainer = Depends(get_services),
) -> list[ProviderStatus]:
    """
    Get AI providers and whether their API key is configured.
    """
    return [
        ProviderStatus(provider=info.type.value, name=info.name, configured=info.configured)
        for info in services.strategy.providers().values()
    ]
