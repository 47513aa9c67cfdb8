"""Models API: list selectable AI models."""

from fastapi import APIRouter, Depends
from typing import Optional

from tryon.services import Services, get_services

router = APIRouter()


@router.get("/models")
async def list_models(
    category: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """List the model catalog, optionally filtered by category."""
    configs = services.providers.list_models(category=category)
    return {
        "models": [
            {
                "model": c.model,
                "display_name": c.display_name,
                "family": c.family,
                "category": c.category.value,
                "can_generate_images": c.can_generate_images,
                "free_tier": c.free_tier,
                "rate_limit": c.rate_limit,
                "description": c.description,
            }
            for c in configs
        ],
        "default": services.providers.default_model,
        "count": len(configs),
    }
