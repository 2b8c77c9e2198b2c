from __future__ import annotations

from fastapi import APIRouter, Depends

from client_packages.loader import PackageLoader
from api.dependencies import get_loader

router = APIRouter(tags=["status"])


@router.get("/status")
async def get_status(loader: PackageLoader = Depends(get_loader)):
    active = loader.get_active_package()
    return {
        "app_name": loader.app_name,
        "connection_state": loader.connection_state.value,
        "language": loader.client_config.language,
        "density": loader.client_config.density,
        "screen": loader.client_config.screen,
        "packages": [package.name for package in loader.list_packages()],
        "active_package": active.name if active else None,
    }
