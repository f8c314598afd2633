"""
Layout engine service.

Turns free-form text plus a text slot into wrapped lines, an auto-fitted font
size and per-line coordinates. Pure functions, no I/O.

The compositor and the preview renderer both call ``compute_text_layout``, so
the constants below are the single source of truth for what the preview shows
and what the generated image contains. Changing any of them changes the
output of every template.
"""
import math
from typing import List, Optional, Sequence

from domain.errors import SlotConfigurationError
from domain.models import LayoutResult, TextAlign, TextLayout, TextSlot


# Average glyph width as a fraction of the font size. A heuristic, not font metrics.
CHAR_WIDTH_FACTOR = 0.6
LINE_HEIGHT_MULTIPLIER = 1.2
MIN_FONT_SIZE = 10
FONT_SIZE_STEP = 2
# Wrap width when a slot declares neither maxWidth nor width.
DEFAULT_MAX_WIDTH = 600


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, like a browser's Math.round."""
    return math.floor(value + 0.5)


def max_chars_per_line(font_size: float, max_width: float) -> int:
    """Characters that fit in max_width at the estimated glyph width (at least 1)."""
    if font_size is None or font_size <= 0:
        raise SlotConfigurationError(f"Font size must be positive, got {font_size!r}")
    if max_width is None:
        raise SlotConfigurationError("A wrap width is required")
    est_char_width = font_size * CHAR_WIDTH_FACTOR
    # Widths narrower than one glyph still get one character per line.
    return max(1, math.floor(max_width / est_char_width))


def wrap_lines(text: str, font_size: float, max_width: float) -> List[str]:
    """
    Greedy word wrap against an estimated character budget.

    Words are whitespace-separated runs. Each word is appended to the current
    line when the joined line still fits; otherwise the current line is
    flushed and the word starts a new one. A word longer than the budget is
    never split and overflows its own line.

    Args:
        text: Free-form user text
        font_size: Font size in template pixels
        max_width: Available line width in template pixels

    Returns:
        Ordered lines; empty for empty or whitespace-only text.
    """
    limit = max_chars_per_line(font_size, max_width)
    lines: List[str] = []
    current = ""
    for word in (text or "").split():
        candidate = f"{current} {word}".strip()
        if len(candidate) <= limit:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


def fit_font_size(line_count: int, initial_font_size: float, max_height: float) -> float:
    """
    Shrink the font in fixed steps until line_count lines fit max_height.

    The line count is taken as given; text is not re-wrapped at the smaller
    sizes. Sizes already at or below MIN_FONT_SIZE are returned unchanged.
    """
    if initial_font_size is None or initial_font_size <= 0:
        raise SlotConfigurationError(f"Font size must be positive, got {initial_font_size!r}")
    if max_height is None:
        raise SlotConfigurationError("A slot height is required to fit the font size")

    font_size = initial_font_size
    while line_count * (font_size * LINE_HEIGHT_MULTIPLIER) > max_height and font_size > MIN_FONT_SIZE:
        font_size = max(MIN_FONT_SIZE, font_size - FONT_SIZE_STEP)
    return font_size


def layout_lines(lines: Sequence[str], font_size_used: float, slot: TextSlot) -> TextLayout:
    """
    Position wrapped lines inside a text slot.

    Lines are centered vertically within the slot height (never starting above
    the slot's top). Each y is the vertical middle of its line box, meant for
    middle-baseline drawing. Centered slots anchor at the horizontal middle of
    the slot; everything else anchors at the slot's left edge.
    """
    if font_size_used is None or font_size_used <= 0:
        raise SlotConfigurationError(f"Font size must be positive, got {font_size_used!r}")

    line_count = len(lines)
    line_height = round_half_up(font_size_used * LINE_HEIGHT_MULTIPLIER)
    total_text_height = line_count * line_height
    slot_height = slot.height if slot.height is not None else line_count * font_size_used * LINE_HEIGHT_MULTIPLIER
    start_y = slot.y + max(0, round_half_up((slot_height - total_text_height) / 2))

    line_ys = [start_y + idx * line_height + line_height / 2 for idx in range(line_count)]

    if slot.text_align == TextAlign.CENTER:
        if slot.width is None:
            raise SlotConfigurationError("A centered text slot needs a width")
        x = slot.x + slot.width / 2
        anchor = "middle"
    else:
        x = slot.x
        anchor = "start"

    return TextLayout(
        start_y=start_y,
        line_height=line_height,
        line_ys=line_ys,
        x=x,
        text_anchor=anchor,
    )


def resolve_wrap_width(slot: TextSlot) -> float:
    """maxWidth, else width, else DEFAULT_MAX_WIDTH."""
    if slot.max_width:
        return slot.max_width
    if slot.width:
        return slot.width
    return DEFAULT_MAX_WIDTH


def compute_text_layout(text: str, slot: TextSlot, font_size: Optional[float] = None) -> LayoutResult:
    """
    Full layout for one render: wrap once at the requested size, fit the size
    to the slot height, then place the lines.

    Args:
        text: Text to draw
        slot: Text slot of the template
        font_size: Optional override of the slot's default font size

    Returns:
        LayoutResult shared by every renderer.
    """
    initial_font_size = font_size or slot.font_size
    lines = wrap_lines(text, initial_font_size, resolve_wrap_width(slot))
    max_height = slot.height or initial_font_size * 2
    font_size_used = fit_font_size(len(lines), initial_font_size, max_height)
    placement = layout_lines(lines, font_size_used, slot)
    return LayoutResult(
        lines=lines,
        font_size_used=font_size_used,
        line_height=placement.line_height,
        start_y=placement.start_y,
        line_ys=placement.line_ys,
        x=placement.x,
        text_anchor=placement.text_anchor,
    )
