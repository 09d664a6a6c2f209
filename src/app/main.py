# src/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.app.config import settings
from src.app.deps import get_import_tracker
from src.app.domain.errors import ExtractionError
from src.app.routers.extract import extraction_error_handler, router as extract_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title="Recipe Vault Extraction API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ExtractionError, extraction_error_handler)
app.include_router(extract_router)


@app.on_event("startup")
async def startup() -> None:
    await get_import_tracker().start_sweeper()


@app.on_event("shutdown")
async def shutdown() -> None:
    await get_import_tracker().shutdown()


@app.get("/health")
def health():
    return {"ok": True, "env": settings.APP_ENV}
