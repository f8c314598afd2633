"""
Template API routes.

Metadata read/update for the template editor, existence checks, and the live
preview endpoints (a rendered PNG, or the raw layout for a browser canvas).
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from PIL import Image
from pydantic import BaseModel

from api import context
from api.routes.generate import error_response, greeting_error_response
from domain.errors import GreetingError, MetadataParseError, TemplateNotFoundError
from services.layout_engine import compute_text_layout
from services.preview_renderer import ImageCanvas, render_preview
from settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)


class UpdateTemplateRequest(BaseModel):
    template: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


@router.get("/template-list")
async def list_templates():
    """Ids of all templates with an image."""
    return {"ok": True, "templates": context.store.list_templates()}


@router.get("/template-check")
async def template_check(name: Optional[str] = None):
    """Confirm a template image exists and is not empty."""
    found = context.store.check_template(name or settings.DEFAULT_TEMPLATE)
    if not found:
        return JSONResponse({"ok": False, "message": "template missing"}, status_code=404)
    filename, size = found
    return {"ok": True, "path": filename, "size": size}


@router.get("/template-meta")
async def template_meta(name: Optional[str] = None):
    """Return the raw descriptor JSON for a template."""
    try:
        meta = context.store.read_metadata(name or settings.DEFAULT_TEMPLATE)
    except TemplateNotFoundError:
        meta = None
    except MetadataParseError:
        logger.warning("Unreadable metadata for template %s", name, exc_info=True)
        return JSONResponse({"ok": False, "message": "failed to read meta"}, status_code=500)
    if meta is None:
        return JSONResponse({"ok": False, "message": "meta not found"}, status_code=404)
    return {"ok": True, "meta": meta}


@router.post("/update-template")
async def update_template(data: UpdateTemplateRequest):
    """Replace an existing template descriptor."""
    if not data.template or data.meta is None:
        return JSONResponse({"error": "Missing template name or metadata"}, status_code=400)
    try:
        context.store.update_descriptor(data.template, data.meta)
    except TemplateNotFoundError:
        return JSONResponse({"error": "Template not found"}, status_code=404)
    except MetadataParseError as e:
        return JSONResponse({"error": str(e)}, status_code=422)
    except OSError:
        logger.error("Failed to write template file for %s", data.template, exc_info=True)
        return JSONResponse({"error": "Failed to update template"}, status_code=500)
    return {"message": "Template updated successfully"}


@router.get("/preview")
async def preview(
    template: Optional[str] = None,
    name: str = "",
    fontSize: Optional[int] = Query(None, gt=0),
    color: Optional[str] = None,
    guides: bool = False,
):
    """Render the live preview as a PNG. Nothing is written to storage."""
    try:
        descriptor = context.store.load_descriptor(template or settings.DEFAULT_TEMPLATE)
        canvas = ImageCanvas(settings.FONTS_DIR)
        await run_in_threadpool(
            render_preview,
            descriptor,
            name[: settings.MAX_NAME_LENGTH],
            canvas,
            font_size=fontSize,
            color=color or None,
            show_guides=guides,
            font_families=settings.FONT_FAMILIES,
        )
    except GreetingError as e:
        return greeting_error_response(e)
    return Response(content=canvas.to_png_bytes(), media_type="image/png")


@router.get("/layout")
async def layout(
    template: Optional[str] = None,
    name: str = "",
    fontSize: Optional[int] = Query(None, gt=0),
):
    """
    Return the computed layout so a browser canvas can draw the same lines.

    The canvas must be sized to width x height, the template's natural size.
    """
    try:
        descriptor = context.store.load_descriptor(template or settings.DEFAULT_TEMPLATE)
        result = compute_text_layout(name[: settings.MAX_NAME_LENGTH], descriptor.text_slot, fontSize)
        with Image.open(descriptor.image_path) as img:
            width, height = img.size
    except GreetingError as e:
        return greeting_error_response(e)
    except OSError:
        return error_response(500, "Failed to read template image")
    return {
        "ok": True,
        "width": width,
        "height": height,
        "color": descriptor.text_slot.color,
        "layout": result.to_dict(),
    }
