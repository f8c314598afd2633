"""
Font-family preferences.

The SVG overlay only declares the family list and lets the rasterizer
substitute. The Pillow preview has to pick a real font file, so it walks the
same list and falls back to Pillow's built-in font when none is installed.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from PIL import ImageFont

logger = logging.getLogger(__name__)

GENERIC_FAMILIES = {"serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui"}


def parse_font_families(value: Optional[str], default: Iterable[str]) -> List[str]:
    """Split a CSS-style family list ("Montserrat, 'Open Sans', sans-serif")."""
    if not value:
        return list(default)
    families = [part.strip().strip("'\"").strip() for part in value.split(",")]
    return [f for f in families if f] or list(default)


def css_font_family(families: Iterable[str]) -> str:
    """Render a family list for CSS/SVG, quoting named families."""
    parts = []
    for family in families:
        if family.lower() in GENERIC_FAMILIES:
            parts.append(family)
        else:
            parts.append(f"'{family}'")
    return ", ".join(parts)


def _candidate_files(family: str, fonts_dir: Path) -> List[Path | str]:
    compact = family.replace(" ", "")
    return [
        fonts_dir / f"{compact}-Bold.ttf",
        fonts_dir / f"{compact}-Bold.otf",
        fonts_dir / f"{compact}.ttf",
        # Bare names are looked up in the system font directories by FreeType.
        f"{compact}-Bold.ttf",
        f"{compact}bd.ttf",
    ]


def load_bold_font(families: Iterable[str], size: float, fonts_dir: Path | str = "fonts"):
    """
    Load the first available bold font from a preference list.

    Generic families are skipped; if nothing matches, Pillow's default font is
    used at the requested size. A missing family is never an error.
    """
    fonts_dir = Path(fonts_dir)
    pixel_size = max(1, int(round(size)))
    for family in families:
        if family.lower() in GENERIC_FAMILIES:
            continue
        for candidate in _candidate_files(family, fonts_dir):
            try:
                return ImageFont.truetype(str(candidate), pixel_size)
            except OSError:
                continue
    logger.debug("No preferred font found in %s; using Pillow default", fonts_dir)
    return ImageFont.load_default(size=pixel_size)
