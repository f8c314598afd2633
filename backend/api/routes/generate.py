"""
Generation API routes.

Accepts the personalization form, renders the greeting, and returns the
artifact's public URL. Persisting a record of the greeting is scheduled as a
background task and can never fail the request.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api import context
from domain.errors import (
    GreetingError,
    MetadataParseError,
    PhotoProcessingError,
    SlotConfigurationError,
    TemplateImageError,
    TemplateNotFoundError,
    TextRenderError,
)
from domain.models import GenerationRequest
from services.greeting_records import record_greeting
from settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    TemplateNotFoundError: 404,
    PhotoProcessingError: 422,
    SlotConfigurationError: 422,
    MetadataParseError: 500,
    TemplateImageError: 500,
    TextRenderError: 500,
}


class GenerateResponse(BaseModel):
    ok: bool
    url: str


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def greeting_error_response(exc: GreetingError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    return error_response(status_code, str(exc))


def parse_font_size(value: Optional[str]) -> Optional[int]:
    """Parse an optional form font size; blank means no override."""
    if value is None or not value.strip():
        return None
    size = int(value.strip())
    if size <= 0:
        raise ValueError("fontSize must be positive")
    return size


@router.post("/generate", response_model=GenerateResponse)
async def generate_greeting(
    request: Request,
    background_tasks: BackgroundTasks,
    name: str = Form(""),
    phone: Optional[str] = Form(None),
    template: Optional[str] = Form(None),
    fontSize: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
):
    """Render a personalized greeting and return its URL."""
    try:
        font_size = parse_font_size(fontSize)
    except ValueError:
        return error_response(422, f"Invalid fontSize: {fontSize!r}")

    req = GenerationRequest(
        text=name[: settings.MAX_NAME_LENGTH],
        template_id=template or settings.DEFAULT_TEMPLATE,
        font_size=font_size,
        color=color or None,
        phone=phone[: settings.MAX_PHONE_LENGTH] if phone else None,
    )

    photo_bytes = None
    if photo is not None and photo.filename:
        photo_bytes = await photo.read()
        if len(photo_bytes) > settings.MAX_PHOTO_BYTES:
            return error_response(413, "Photo is too large")

    try:
        artifact = await run_in_threadpool(
            context.compositor.render,
            req.template_id,
            req.text,
            req.font_size,
            req.color,
            photo_bytes,
        )
    except GreetingError as e:
        logger.warning("Generation failed for template %s: %s", req.template_id, e)
        return greeting_error_response(e)

    handle = getattr(request.app.state, "db_handle", None)
    background_tasks.add_task(record_greeting, handle, req.text or None, req.phone, artifact.public_url)

    return GenerateResponse(ok=True, url=artifact.public_url)
