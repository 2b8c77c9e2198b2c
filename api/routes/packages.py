from __future__ import annotations

import asyncio
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from client_packages.loader import LoadError, PackageLoader, PackageNotLoadedError
from api.dependencies import get_load_deadline, get_loader

router = APIRouter(prefix="/packages", tags=["packages"])


def _get_package(loader: PackageLoader, name: str):
    try:
        return loader.get_package(name)
    except PackageNotLoadedError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("")
async def list_packages(loader: PackageLoader = Depends(get_loader)):
    return [asdict(package.summary()) for package in loader.list_packages()]


@router.get("/{name}")
async def get_package(name: str, loader: PackageLoader = Depends(get_loader)):
    return asdict(_get_package(loader, name).summary())


@router.post("/{name}/load")
async def load_package(
    name: str,
    loader: PackageLoader = Depends(get_loader),
    deadline: float = Depends(get_load_deadline),
):
    try:
        package = await asyncio.wait_for(loader.fetch_package(name), timeout=deadline)
    except asyncio.TimeoutError:
        # the loader keeps retrying in the background
        raise HTTPException(
            status_code=504,
            detail={"message": f"Package {name} is still loading", "connection_state": loader.connection_state.value},
        )
    except LoadError as exc:
        status = exc.response.code if exc.response is not None else None
        raise HTTPException(
            status_code=502,
            detail={"message": str(exc), "upstream_status": status},
        )
    return asdict(package.summary())


@router.post("/{name}/display")
async def display_package(name: str, loader: PackageLoader = Depends(get_loader)):
    _get_package(loader, name)
    container = loader.display_package(name)
    return {
        "active_package": name,
        "changed": container is not None,
    }
