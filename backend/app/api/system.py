"""
System information API endpoints.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from .._version import __version__, __release_date__
from ..config import config

router = APIRouter()


class VersionResponse(BaseModel):
    """Response model for version information."""
    version: str
    release_date: str


class EngineSettingsResponse(BaseModel):
    """Effective engine settings (after ENV / config.json / default resolution)."""
    brace_tolerance: int
    paren_tolerance: int
    ast_timeout_seconds: float
    ast_cache_ttl: int
    enhanced_engine_enabled: bool
    validators_dir: str


@router.get("/version", response_model=VersionResponse)
async def get_version():
    """
    Get the current layerfix backend version and release date.

    Returns:
        VersionResponse: Current version information including release date
    """
    return VersionResponse(version=__version__, release_date=__release_date__)


@router.get("/engine", response_model=EngineSettingsResponse)
async def get_engine_settings():
    """Effective engine configuration."""
    return EngineSettingsResponse(
        brace_tolerance=config.get_brace_tolerance(),
        paren_tolerance=config.get_paren_tolerance(),
        ast_timeout_seconds=config.get_ast_timeout(),
        ast_cache_ttl=config.get_ast_cache_ttl(),
        enhanced_engine_enabled=config.is_enhanced_engine_enabled(),
        validators_dir=config.get_validators_dir(),
    )
