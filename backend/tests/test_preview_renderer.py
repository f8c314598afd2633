from io import BytesIO

import pytest
from PIL import Image

from domain.errors import PhotoProcessingError, SlotConfigurationError
from services.preview_renderer import (
    GUIDE_LINE_WIDTH,
    PHOTO_GUIDE_COLOR,
    TEXT_GUIDE_COLOR,
    ImageCanvas,
    PreviewCanvas,
    render_preview,
)
from services.template_store import TemplateStore
from tests.conftest import PARITY_META, png_bytes, write_template


class RecordingCanvas(PreviewCanvas):
    """Captures draw calls instead of painting."""

    def __init__(self):
        self.size = None
        self.images = []
        self.font = None
        self.texts = []
        self.rects = []

    def resize(self, width, height):
        self.size = (width, height)

    def draw_image(self, image, x, y):
        self.images.append((image.size, x, y))

    def set_font(self, families, size, weight=700):
        self.font = (list(families), size, weight)

    def fill_text(self, text, x, y, fill, align):
        self.texts.append((text, x, y, fill, align))

    def stroke_rect(self, x, y, width, height, color, line_width):
        self.rects.append((x, y, width, height, color, line_width))


def _descriptor(templates_dir, meta=PARITY_META, **kwargs):
    write_template(templates_dir, "t", meta=meta, **kwargs)
    return TemplateStore(templates_dir).load_descriptor("t")


def test_canvas_sized_to_template(templates_dir):
    canvas = RecordingCanvas()
    render_preview(_descriptor(templates_dir, size=(1400, 700)), "Ada", canvas)
    assert canvas.size == (1400, 700)
    assert canvas.images[0] == ((1400, 700), 0, 0)


def test_draws_each_line_at_layout_positions(templates_dir):
    canvas = RecordingCanvas()
    layout = render_preview(_descriptor(templates_dir), "Mrs. Eleanor Vance", canvas)
    assert canvas.texts == [("Mrs. Eleanor Vance", 700, 350.0, "#0b3d91", "middle")]
    assert canvas.font == (["Montserrat", "Arial", "sans-serif"], 72, 700)
    assert layout.start_y == 307


def test_overrides(templates_dir):
    canvas = RecordingCanvas()
    layout = render_preview(
        _descriptor(templates_dir), "Ada", canvas, font_size=30, color="#123456",
        font_families=["Roboto"],
    )
    assert layout.font_size_used == 30
    assert canvas.texts[0][3] == "#123456"
    assert canvas.font[0] == ["Roboto"]


def test_photo_is_placed_in_slot(templates_dir):
    canvas = RecordingCanvas()
    render_preview(_descriptor(templates_dir), "Ada", canvas, photo=png_bytes())
    assert canvas.images[1] == ((200, 200), 40, 40)


def test_photo_without_slot_is_rejected(templates_dir):
    meta = {"textSlot": dict(PARITY_META["textSlot"])}
    canvas = RecordingCanvas()
    with pytest.raises(PhotoProcessingError):
        render_preview(_descriptor(templates_dir, meta=meta), "Ada", canvas, photo=png_bytes())
    assert canvas.texts == []


def test_undrawable_color_is_rejected(templates_dir):
    canvas = RecordingCanvas()
    with pytest.raises(SlotConfigurationError):
        render_preview(_descriptor(templates_dir), "Ada", canvas, color="notacolor")
    assert canvas.texts == []


def test_guides(templates_dir):
    canvas = RecordingCanvas()
    render_preview(_descriptor(templates_dir), "Ada", canvas, show_guides=True)
    assert canvas.rects == [
        (40, 40, 200, 200, PHOTO_GUIDE_COLOR, GUIDE_LINE_WIDTH),
        (100, 200, 1200, 300, TEXT_GUIDE_COLOR, GUIDE_LINE_WIDTH),
    ]


def test_no_guides_by_default(templates_dir):
    canvas = RecordingCanvas()
    render_preview(_descriptor(templates_dir), "Ada", canvas)
    assert canvas.rects == []


def test_empty_name_draws_no_text(templates_dir):
    canvas = RecordingCanvas()
    render_preview(_descriptor(templates_dir), "   ", canvas)
    assert canvas.texts == []


def test_image_canvas_renders_png(templates_dir, tmp_path):
    canvas = ImageCanvas(tmp_path / "no-fonts-here")
    render_preview(_descriptor(templates_dir, size=(1600, 900)), "Ada Lovelace", canvas, show_guides=True)

    data = canvas.to_png_bytes()
    with Image.open(BytesIO(data)) as img:
        assert img.format == "PNG"
        assert img.size == (1600, 900)
        # left edge of the blue text guide
        pixel = img.convert("RGBA").getpixel((101, 350))
        assert pixel[2] > pixel[0]
