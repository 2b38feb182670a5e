"""
helpmate/api/widget.py

Purpose: Serves the embeddable widget script
"""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

router = APIRouter()

WIDGET_PATH = Path(__file__).resolve().parent.parent / "static" / "widget.js"


@router.get("/widget.js", include_in_schema=False)
async def widget_script():
    return FileResponse(
        WIDGET_PATH,
        media_type="application/javascript",
        headers={"Cache-Control": "public, max-age=300"},
    )
