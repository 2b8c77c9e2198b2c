from __future__ import annotations

import os
from functools import lru_cache

from client_packages.loader import LoaderSettings, PackageLoader, build_loader


@lru_cache(maxsize=1)
def get_settings() -> LoaderSettings:
    return LoaderSettings.from_env()


@lru_cache(maxsize=1)
def get_loader() -> PackageLoader:
    return build_loader(get_settings())


def get_load_deadline() -> float:
    return float(os.getenv("PACKAGE_LOADER_API_DEADLINE", "10"))
