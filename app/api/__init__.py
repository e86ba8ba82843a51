# app/api/__init__.py
from fastapi import FastAPI

from app.api.routers import carts, health, promotions


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cart Promotion Service",
        version="1.0.0",
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(promotions.router)

    return app
