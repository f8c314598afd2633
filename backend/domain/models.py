"""
Core domain models for the greeting generator.
These are framework-agnostic and shared by the compositor, the preview
renderer and the API.

Template descriptors are stored as JSON next to the template image using the
camelCase keys the template editor writes::

    {
      "textSlot": {"x": 800, "y": 200, "width": 1200, "height": 300,
                   "maxWidth": 1200, "fontSize": 72, "color": "#0b3d91",
                   "textAlign": "center", "fontFamily": "Montserrat, Arial, sans-serif"},
      "photoSlot": {"x": 200, "y": 250, "width": 400, "height": 400, "shape": "circle"}
    }
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from domain.errors import MetadataParseError


class TextAlign(str, Enum):
    """Horizontal anchoring of text lines within a text slot."""
    START = "start"
    CENTER = "center"

    @classmethod
    def parse(cls, value: Any) -> "TextAlign":
        # Anything other than "center" anchors at the slot's left edge.
        if isinstance(value, str) and value.strip().lower() == cls.CENTER.value:
            return cls.CENTER
        return cls.START


class SlotShape(str, Enum):
    """Shape of the mask applied to a photo slot."""
    RECT = "rect"
    CIRCLE = "circle"


def _number(data: Dict[str, Any], key: str, where: str, required: bool = True) -> Optional[float]:
    value = data.get(key)
    if value is None:
        if required:
            raise MetadataParseError(f"{where}.{key} is required")
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MetadataParseError(f"{where}.{key} must be a number, got {value!r}")
    return value


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class TextSlot:
    """Region of template pixel space where the name is drawn."""
    x: float
    y: float
    font_size: float
    color: str
    width: Optional[float] = None
    height: Optional[float] = None
    max_width: Optional[float] = None
    text_align: TextAlign = TextAlign.START
    font_family: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "TextSlot":
        if not isinstance(data, dict):
            raise MetadataParseError("textSlot must be an object")
        color = data.get("color")
        if not isinstance(color, str) or not color.strip():
            raise MetadataParseError("textSlot.color is required")
        font_family = data.get("fontFamily")
        if font_family is not None and not isinstance(font_family, str):
            raise MetadataParseError("textSlot.fontFamily must be a string")
        return cls(
            x=_number(data, "x", "textSlot"),
            y=_number(data, "y", "textSlot"),
            font_size=_number(data, "fontSize", "textSlot"),
            color=color.strip(),
            width=_number(data, "width", "textSlot", required=False),
            height=_number(data, "height", "textSlot", required=False),
            max_width=_number(data, "maxWidth", "textSlot", required=False),
            text_align=TextAlign.parse(data.get("textAlign")),
            font_family=font_family,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "maxWidth": self.max_width,
            "fontSize": self.font_size,
            "color": self.color,
            "textAlign": self.text_align.value,
            "fontFamily": self.font_family,
        })


@dataclass
class PhotoSlot:
    """Region of template pixel space where an uploaded photo is placed."""
    x: int
    y: int
    width: int
    height: int
    shape: SlotShape = SlotShape.RECT

    @classmethod
    def from_dict(cls, data: Any) -> "PhotoSlot":
        if not isinstance(data, dict):
            raise MetadataParseError("photoSlot must be an object")
        width = _number(data, "width", "photoSlot")
        height = _number(data, "height", "photoSlot")
        if width <= 0 or height <= 0:
            raise MetadataParseError("photoSlot width and height must be positive")
        shape_raw = data.get("shape") or SlotShape.RECT.value
        try:
            shape = SlotShape(shape_raw)
        except ValueError:
            raise MetadataParseError(f"photoSlot.shape must be 'rect' or 'circle', got {shape_raw!r}")
        return cls(
            x=int(_number(data, "x", "photoSlot")),
            y=int(_number(data, "y", "photoSlot")),
            width=int(width),
            height=int(height),
            shape=shape,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "shape": self.shape.value,
        }


@dataclass
class TemplateDescriptor:
    """
    A template: its background image plus the slots drawn onto it.

    image_path is filled in by the template store once the image has been
    resolved; descriptors parsed from raw JSON leave it empty.
    """
    template_id: str
    text_slot: TextSlot
    photo_slot: Optional[PhotoSlot] = None
    image_path: Optional[Path] = None

    @classmethod
    def from_dict(
        cls,
        template_id: str,
        data: Any,
        image_path: Optional[Path] = None,
    ) -> "TemplateDescriptor":
        if not isinstance(data, dict):
            raise MetadataParseError("Template metadata must be a JSON object")
        if "textSlot" not in data:
            raise MetadataParseError("textSlot is required")
        photo_raw = data.get("photoSlot")
        return cls(
            template_id=template_id,
            text_slot=TextSlot.from_dict(data["textSlot"]),
            photo_slot=PhotoSlot.from_dict(photo_raw) if photo_raw is not None else None,
            image_path=image_path,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"textSlot": self.text_slot.to_dict()}
        if self.photo_slot:
            data["photoSlot"] = self.photo_slot.to_dict()
        return data


# Used when a template image has no descriptor JSON next to it.
DEFAULT_TEXT_SLOT = TextSlot(x=800, y=200, max_width=1200, font_size=72, color="#0b3d91")
DEFAULT_PHOTO_SLOT = PhotoSlot(x=200, y=250, width=400, height=400, shape=SlotShape.CIRCLE)


def default_descriptor(template_id: str, image_path: Optional[Path] = None) -> TemplateDescriptor:
    """Built-in descriptor for templates without metadata."""
    return TemplateDescriptor(
        template_id=template_id,
        text_slot=replace(DEFAULT_TEXT_SLOT),
        photo_slot=replace(DEFAULT_PHOTO_SLOT),
        image_path=image_path,
    )


@dataclass
class TextLayout:
    """Vertical and horizontal placement of already-wrapped lines."""
    start_y: float
    line_height: int
    line_ys: List[float]
    x: float
    text_anchor: str  # "middle" | "start", SVG naming


@dataclass
class LayoutResult:
    """
    Everything a renderer needs to draw the name.

    Recomputed for every render; never persisted.
    """
    lines: List[str]
    font_size_used: float
    line_height: int
    start_y: float
    line_ys: List[float] = field(default_factory=list)
    x: float = 0
    text_anchor: str = "start"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines": list(self.lines),
            "fontSizeUsed": self.font_size_used,
            "lineHeight": self.line_height,
            "startY": self.start_y,
            "lineYs": list(self.line_ys),
            "x": self.x,
            "textAnchor": self.text_anchor,
        }


@dataclass
class GenerationRequest:
    """One request to personalize a template."""
    text: str
    template_id: str
    font_size: Optional[float] = None
    color: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class GeneratedArtifact:
    """A finished raster written to generated storage."""
    file_path: Path
    public_url: str


@dataclass
class GreetingRecord:
    """A generation reported to the optional record-keeper."""
    id: Optional[int]
    name: Optional[str]
    phone: Optional[str]
    image_url: str
    created_at: datetime = field(default_factory=datetime.utcnow)
