"""
Configuration API routes
Exposes models and detection thresholds to the client
"""
from fastapi import APIRouter

from ..schemas import ConfigResponse
from ..services import marking_service

router = APIRouter()


@router.get("/", response_model=ConfigResponse)
async def get_config():
    """
    Get current application configuration
    """
    return ConfigResponse(**marking_service.get_config())


@router.get("/models")
async def get_models():
    """
    Get available AI models
    """
    config = marking_service.get_config()
    return {
        "models": config["available_models"],
        "default": config["default_model"]
    }
