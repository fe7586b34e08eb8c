"""Aggregate app for the avatar engines."""
from __future__ import annotations

from fastapi import FastAPI

from avatar_engines.avatar_decoration.routes import router as avatar_router


def create_app() -> FastAPI:
    app = FastAPI(title="avatar-engines")
    app.include_router(avatar_router)
    return app


app = create_app()
