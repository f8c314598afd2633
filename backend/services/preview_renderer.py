"""
Live preview renderer.

Paints an approximation of the final greeting onto a drawing surface without
writing an artifact. It sizes the surface from the same template image the
compositor uses and takes every coordinate from the shared layout engine, so
lines, font size and positions match the generated file exactly. Only glyph
shapes may differ, since the preview draws with whatever font is installed.
"""
import logging
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw

from domain.errors import PhotoProcessingError
from domain.models import LayoutResult, TemplateDescriptor
from services.compositor import (
    DEFAULT_FONT_FAMILIES,
    PhotoSource,
    load_template_image,
    prepare_photo,
    resolve_text_color,
)
from services.fonts import load_bold_font, parse_font_families
from services.layout_engine import compute_text_layout

logger = logging.getLogger(__name__)

PHOTO_GUIDE_COLOR = (255, 0, 0, 178)
TEXT_GUIDE_COLOR = (0, 0, 255, 178)
GUIDE_LINE_WIDTH = 5


class PreviewCanvas:
    """
    Minimal 2D drawing surface used by the preview.

    Mirrors the subset of a browser canvas the preview needs. Text is drawn
    with a middle baseline; align is "start" or "middle".
    """

    def resize(self, width: int, height: int) -> None:
        raise NotImplementedError

    def draw_image(self, image: Image.Image, x: int, y: int) -> None:
        raise NotImplementedError

    def set_font(self, families: List[str], size: float, weight: int = 700) -> None:
        raise NotImplementedError

    def fill_text(self, text: str, x: float, y: float, fill: str, align: str) -> None:
        raise NotImplementedError

    def stroke_rect(self, x: float, y: float, width: float, height: float,
                    color: Tuple[int, int, int, int], line_width: int) -> None:
        raise NotImplementedError


class ImageCanvas(PreviewCanvas):
    """PreviewCanvas backed by a Pillow RGBA image."""

    # Pillow anchors: horizontal l/m, vertical m (middle of ascender/descender)
    _ANCHORS = {"start": "lm", "middle": "mm"}

    def __init__(self, fonts_dir: Path | str = "fonts"):
        self.fonts_dir = Path(fonts_dir)
        self.image: Optional[Image.Image] = None
        self._draw: Optional[ImageDraw.ImageDraw] = None
        self._font = None

    def resize(self, width: int, height: int) -> None:
        self.image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)

    def draw_image(self, image: Image.Image, x: int, y: int) -> None:
        layer = image if image.mode == "RGBA" else image.convert("RGBA")
        self.image.paste(layer, (x, y), layer)

    def set_font(self, families: List[str], size: float, weight: int = 700) -> None:
        self._font = load_bold_font(families, size, self.fonts_dir)

    def fill_text(self, text: str, x: float, y: float, fill: str, align: str) -> None:
        anchor = self._ANCHORS.get(align, "lm")
        self._draw.text((x, y), text, fill=fill, font=self._font, anchor=anchor)

    def stroke_rect(self, x, y, width, height, color, line_width) -> None:
        self._draw.rectangle((x, y, x + width, y + height), outline=color, width=line_width)

    def to_png_bytes(self) -> bytes:
        output = BytesIO()
        self.image.save(output, format="PNG")
        return output.getvalue()


def render_preview(
    descriptor: TemplateDescriptor,
    text: str,
    canvas: PreviewCanvas,
    font_size: Optional[float] = None,
    color: Optional[str] = None,
    photo: Optional[PhotoSource] = None,
    show_guides: bool = False,
    font_families: Optional[List[str]] = None,
) -> LayoutResult:
    """
    Draw a live preview of a greeting onto a canvas.

    Args:
        descriptor: Template with resolved image_path
        text: Name being typed
        canvas: Surface to draw on; resized to the template's natural size
        font_size: Optional font size override
        color: Optional color override
        photo: Optional photo, placed like the compositor places it
        show_guides: Outline the photo slot (red) and text slot (blue)
        font_families: Default family preference when the slot names none

    Returns:
        The LayoutResult that was drawn

    Raises:
        PhotoProcessingError: If a photo is given for a template without a photo slot
        SlotConfigurationError: If the text color cannot be drawn
    """
    template = load_template_image(descriptor.image_path)
    canvas.resize(template.width, template.height)
    canvas.draw_image(template, 0, 0)

    if photo is not None:
        if descriptor.photo_slot is None:
            raise PhotoProcessingError(f"Template {descriptor.template_id} has no photo slot")
        slot = descriptor.photo_slot
        canvas.draw_image(prepare_photo(photo, slot), slot.x, slot.y)

    slot = descriptor.text_slot
    text_color = resolve_text_color(color or slot.color)
    layout = compute_text_layout(text, slot, font_size)
    families = parse_font_families(slot.font_family, font_families or DEFAULT_FONT_FAMILIES)

    canvas.set_font(families, layout.font_size_used)
    for line, y in zip(layout.lines, layout.line_ys):
        canvas.fill_text(line, layout.x, y, fill=text_color, align=layout.text_anchor)

    if show_guides:
        if descriptor.photo_slot is not None:
            p = descriptor.photo_slot
            canvas.stroke_rect(p.x, p.y, p.width, p.height, PHOTO_GUIDE_COLOR, GUIDE_LINE_WIDTH)
        # Point slots have no box to outline.
        if slot.width is not None and slot.height is not None:
            canvas.stroke_rect(slot.x, slot.y, slot.width, slot.height, TEXT_GUIDE_COLOR, GUIDE_LINE_WIDTH)

    logger.debug("Preview %s: %d lines at %spx", descriptor.template_id, len(layout.lines), layout.font_size_used)
    return layout
