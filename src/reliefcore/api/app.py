# src/reliefcore/api/app.py
"""
FastAPI application wiring.

The relief frontend (Vite dev server on :5173 by default) calls this API from the browser,
so its origins are allowed through CORS. Origins come from `app.cors_origins`;
`RELIEFCORE_FRONTEND_URL` adds the deployed frontend. Business logic lives in
`reliefcore.api.routes` and `reliefcore.decision`.
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from reliefcore.config.settings import get_settings
from reliefcore.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="ReliefCore API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().app.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(router)
