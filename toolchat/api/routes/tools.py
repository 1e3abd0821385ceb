"""Capability catalog endpoint."""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends

from ...config_loader import load_capabilities
from ...models import Capability
from ..schemas import CapabilityInfo, CapabilityListResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_capabilities() -> tuple[Capability, ...]:
    """Catalog loaded once per process."""
    capabilities = tuple(load_capabilities())
    logger.info(f"Loaded {len(capabilities)} capabilities")
    return capabilities


@router.get(
    "/api/tools",
    response_model=CapabilityListResponse,
    summary="List tools",
    description="List the tools a caller can enable, with display metadata.",
)
def list_tools(
    capabilities: tuple[Capability, ...] = Depends(get_capabilities),
) -> CapabilityListResponse:
    """Return the capability catalog."""
    return CapabilityListResponse(
        data=[CapabilityInfo.from_capability(c) for c in capabilities]
    )
