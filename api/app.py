from __future__ import annotations

import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.packages import router as packages_router
from api.routes.status import router as status_router


def cors_origins() -> List[str]:
    raw = os.getenv("PACKAGE_LOADER_CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    app = FastAPI(title="Package Loader API", version="0.1.0")

    origins = cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # credentialed requests only from explicitly listed origins
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(packages_router)
    app.include_router(status_router)

    @app.get("/healthz")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
