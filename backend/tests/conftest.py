import json
import os
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Keep settings-driven folders out of the working tree; must run before settings is imported
_RUNTIME_DIR = Path(tempfile.mkdtemp(prefix="greeting-tests-"))
os.environ.setdefault("GENERATED_DIR", str(_RUNTIME_DIR / "generated"))
os.environ.setdefault("TEMPLATES_DIR", str(_RUNTIME_DIR / "templates"))
os.environ.setdefault("RETENTION_ENABLED", "false")
os.environ.pop("DATABASE_URL", None)


PARITY_META = {
    "textSlot": {
        "x": 100,
        "y": 200,
        "width": 1200,
        "height": 300,
        "maxWidth": 1200,
        "fontSize": 72,
        "color": "#0b3d91",
        "textAlign": "center",
    },
    "photoSlot": {"x": 40, "y": 40, "width": 200, "height": 200, "shape": "circle"},
}


def write_image(path: Path, size=(1600, 900), color=(240, 230, 200), fmt=None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def write_template(templates_dir: Path, template_id: str, meta=None, ext=".png", size=(1600, 900)) -> Path:
    image_path = write_image(templates_dir / f"{template_id}{ext}", size=size)
    if meta is not None:
        (templates_dir / f"{template_id}.json").write_text(json.dumps(meta), encoding="utf-8")
    return image_path


def png_bytes(size=(300, 200), color=(0, 200, 0)) -> bytes:
    from io import BytesIO

    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class CapturingRasterizer:
    """Stand-in for the Wand rasterizer: records the SVG and returns a blank layer."""

    def __init__(self, block=None, block_color=(255, 0, 0, 255)):
        self.calls = []
        self.block = block
        self.block_color = block_color

    def __call__(self, svg: str, width: int, height: int) -> Image.Image:
        self.calls.append({"svg": svg, "width": width, "height": height})
        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        if self.block:
            layer.paste(self.block_color, self.block)
        return layer

    @property
    def last_svg(self) -> str:
        return self.calls[-1]["svg"]


@pytest.fixture
def templates_dir(tmp_path):
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture
def generated_dir(tmp_path):
    return tmp_path / "generated"


@pytest.fixture
def rasterizer():
    return CapturingRasterizer()
