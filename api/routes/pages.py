"""
Static front-end pages: landing page and the POS interface.
"""
from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from api.dependencies import get_app_settings
from core.config import Settings


router = APIRouter(tags=["Pages"])

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _page(settings: Settings, name: str) -> FileResponse:
    base = Path(settings.STATIC_DIR)
    if not base.is_absolute():
        base = PROJECT_ROOT / base
    path = base / name
    if not path.is_file():
        raise HTTPException(status_code=404)
    return FileResponse(path, media_type="text/html")


@router.get("/", include_in_schema=False)
async def landing_page(settings: Settings = Depends(get_app_settings)):
    return _page(settings, "index.html")


@router.get("/pos", include_in_schema=False)
@router.get("/pos.html", include_in_schema=False)
async def pos_page(settings: Settings = Depends(get_app_settings)):
    return _page(settings, "pos.html")
