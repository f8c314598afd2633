"""
Greeting compositor.

Renders a personalized greeting onto a template image and writes it to
generated storage. Layers are flattened in a fixed order:

1. Template background at its natural size (this is the output canvas size)
2. Optional photo, cover-fitted to the photo slot and optionally circle-masked
3. Text, drawn as an SVG overlay the size of the canvas and rasterized with Wand

Text positions come from the layout engine, the same computation the live
preview uses, so the preview and the file agree line for line.

Lines are placed with `dominant-baseline="middle"`. ImageMagick only honors
that attribute when it renders SVG through its librsvg delegate; the built-in
MSVG coder ignores it and draws every line on its alphabetic baseline, above
where the preview puts it. Deployments need an rsvg-enabled ImageMagick
(`convert -list format | grep SVG` shows `RSVG`).
"""
import logging
import math
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, List, Optional, Union
from xml.sax.saxutils import escape

from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageOps

from domain.errors import PhotoProcessingError, SlotConfigurationError, TemplateImageError, TextRenderError
from domain.models import GeneratedArtifact, LayoutResult, PhotoSlot, SlotShape, TemplateDescriptor
from services.fonts import css_font_family, parse_font_families
from services.layout_engine import compute_text_layout
from services.template_store import TemplateStore
from storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

PhotoSource = Union[str, Path, bytes, BinaryIO]
OverlayRasterizer = Callable[[str, int, int], Image.Image]

DEFAULT_FONT_FAMILIES = ("Montserrat", "Arial", "sans-serif")
TEXT_FONT_WEIGHT = 700

_MARKUP_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_markup(value: str) -> str:
    """Escape &, <, >, and both quote characters for embedding in SVG."""
    return escape(value, _MARKUP_ENTITIES)


def resolve_text_color(color: str) -> str:
    """
    Check that a text color is one both renderers can draw.

    Raises:
        SlotConfigurationError: If Pillow cannot parse the color
    """
    try:
        ImageColor.getrgb(color)
    except (ValueError, AttributeError) as e:
        raise SlotConfigurationError(f"Invalid text color: {color!r}") from e
    return color


def _fmt(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


# ============================================
# Template and photo layers
# ============================================

def load_template_image(path: Path) -> Image.Image:
    """
    Decode a template into an RGBA canvas at its natural size.

    Raises:
        TemplateImageError: If the file cannot be decoded
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise TemplateImageError(f"Failed to decode template image {path.name}: {e}") from e


def cover_fit(image: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """
    Resize/crop to cover the target box while retaining aspect ratio.
    The crop is centered.
    """
    scale = max(target_width / image.width, target_height / image.height)
    new_size = (
        max(target_width, math.ceil(image.width * scale)),
        max(target_height, math.ceil(image.height * scale)),
    )
    resized = image.resize(new_size, Image.Resampling.LANCZOS)

    left = (resized.width - target_width) // 2
    top = (resized.height - target_height) // 2
    return resized.crop((left, top, left + target_width, top + target_height))


def circle_mask(width: int, height: int) -> Image.Image:
    """'L' mask with an opaque circle centered in the box, diameter = shorter side."""
    mask = Image.new("L", (width, height), 0)
    radius = min(width, height) / 2
    cx, cy = width / 2, height / 2
    ImageDraw.Draw(mask).ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=255)
    return mask


def prepare_photo(source: PhotoSource, slot: PhotoSlot) -> Image.Image:
    """
    Cover-fit a photo to the slot and apply the slot's shape.

    Raises:
        PhotoProcessingError: If the photo cannot be decoded or resized
    """
    if isinstance(source, bytes):
        source = BytesIO(source)
    try:
        with Image.open(source) as img:
            img = ImageOps.exif_transpose(img)
            photo = cover_fit(img.convert("RGBA"), slot.width, slot.height)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise PhotoProcessingError(f"Failed to process photo: {e}") from e

    if slot.shape == SlotShape.CIRCLE:
        alpha = ImageChops.multiply(photo.getchannel("A"), circle_mask(slot.width, slot.height))
        photo.putalpha(alpha)
    return photo


# ============================================
# Text overlay
# ============================================

def build_text_overlay_svg(
    layout: LayoutResult,
    width: int,
    height: int,
    color: str,
    font_families: Iterable[str] = DEFAULT_FONT_FAMILIES,
) -> str:
    """
    Build the canvas-sized SVG that carries the text.

    All user-controlled values are escaped. Lines are positioned with the
    middle baseline so each y is the vertical center of its line box.
    """
    tspans = "".join(
        f'<tspan x="{_fmt(layout.x)}" y="{_fmt(y)}">{escape_markup(line)}</tspan>'
        for line, y in zip(layout.lines, layout.line_ys)
    )
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
        f'<text font-family="{escape_markup(css_font_family(font_families))}" '
        f'font-size="{_fmt(layout.font_size_used)}px" font-weight="{TEXT_FONT_WEIGHT}" '
        f'fill="{escape_markup(color)}" text-anchor="{layout.text_anchor}" '
        f'dominant-baseline="middle">{tspans}</text>'
        f"</svg>"
    )


def rasterize_svg_overlay(svg: str, width: int, height: int) -> Image.Image:
    """
    Rasterize an SVG overlay to an RGBA layer with ImageMagick (Wand).

    Raises:
        TextRenderError: If MagickWand is missing or ImageMagick cannot render the SVG
    """
    # Wand raises ImportError (or OSError on some platforms) when MagickWand is absent.
    try:
        from wand.color import Color as WandColor
        from wand.exceptions import WandException
        from wand.image import Image as WandImage
    except (ImportError, OSError) as e:
        raise TextRenderError(f"ImageMagick is not available: {e}") from e

    try:
        with WandImage(blob=svg.encode("utf-8"), format="svg", background=WandColor("transparent")) as img:
            img.format = "png"
            blob = img.make_blob()
        overlay = Image.open(BytesIO(blob)).convert("RGBA")
    except (WandException, OSError, ValueError) as e:
        raise TextRenderError(f"Failed to render text overlay: {e}") from e

    if overlay.size != (width, height):
        overlay = overlay.resize((width, height), Image.Resampling.LANCZOS)
    return overlay


def flatten_layers(
    background: Image.Image,
    text_layer: Image.Image,
    photo: Optional[Image.Image] = None,
    photo_slot: Optional[PhotoSlot] = None,
) -> Image.Image:
    """Background, then photo, then text. Text is always on top."""
    canvas = background.copy()
    if photo is not None and photo_slot is not None:
        canvas.paste(photo, (photo_slot.x, photo_slot.y), photo)
    return Image.alpha_composite(canvas, text_layer)


# ============================================
# Compositor
# ============================================

class GreetingCompositor:
    """
    Server-side renderer for greetings.

    Stateless apart from its collaborators, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        store: TemplateStore,
        storage: FileStorage,
        font_families: Optional[List[str]] = None,
        image_format: str = "png",
        quality: int = 90,
        rasterizer: OverlayRasterizer = rasterize_svg_overlay,
    ):
        self.store = store
        self.storage = storage
        self.font_families = list(font_families or DEFAULT_FONT_FAMILIES)
        self.image_format = image_format
        self.quality = quality
        self.rasterizer = rasterizer

    def compose(
        self,
        descriptor: TemplateDescriptor,
        text: str,
        font_size: Optional[float] = None,
        color: Optional[str] = None,
        photo: Optional[PhotoSource] = None,
    ) -> tuple[Image.Image, LayoutResult, str]:
        """
        Build the flattened image without writing it.

        Returns:
            (image, layout, svg overlay markup)
        """
        background = load_template_image(descriptor.image_path)
        width, height = background.size

        photo_layer = None
        if photo is not None:
            if descriptor.photo_slot is None:
                raise PhotoProcessingError(f"Template {descriptor.template_id} has no photo slot")
            photo_layer = prepare_photo(photo, descriptor.photo_slot)

        slot = descriptor.text_slot
        text_color = resolve_text_color(color or slot.color)
        layout = compute_text_layout(text, slot, font_size)

        families = parse_font_families(slot.font_family, self.font_families)
        svg = build_text_overlay_svg(layout, width, height, text_color, families)
        text_layer = self.rasterizer(svg, width, height)

        image = flatten_layers(background, text_layer, photo_layer, descriptor.photo_slot)
        return image, layout, svg

    def render(
        self,
        template_id: str,
        text: str,
        font_size: Optional[float] = None,
        color: Optional[str] = None,
        photo: Optional[PhotoSource] = None,
    ) -> GeneratedArtifact:
        """
        Render a greeting and write it to generated storage.

        Args:
            template_id: Template id, resolved by extension probing
            text: Name to draw
            font_size: Optional override of the slot's font size
            color: Optional override of the slot's color
            photo: Optional photo (path, bytes or file object)

        Returns:
            GeneratedArtifact; the file exists and is complete when returned

        Raises:
            TemplateNotFoundError, MetadataParseError, TemplateImageError,
            PhotoProcessingError, SlotConfigurationError, TextRenderError
        """
        descriptor = self.store.load_descriptor(template_id)
        image, layout, _ = self.compose(descriptor, text, font_size, color, photo)
        artifact = self.storage.save_image(image, self.image_format, self.quality)
        logger.info(
            "Rendered template=%s lines=%d font_size=%s -> %s",
            descriptor.template_id,
            len(layout.lines),
            layout.font_size_used,
            artifact.public_url,
        )
        return artifact
