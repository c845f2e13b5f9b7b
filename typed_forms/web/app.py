from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from typed_forms.core.config import settings
from typed_forms.typed_form import TypedForm
from .router import build_form_router


def create_app(forms: Iterable[type[TypedForm]] = ()) -> FastAPI:
    logging.getLogger("typed_forms").setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(title=settings.APP_TITLE, version="0.1.0")

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for form_cls in forms:
        app.include_router(build_form_router(form_cls))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
