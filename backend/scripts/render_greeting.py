"""Render one personalized greeting from the command line.

Usage (from backend/):
    python -m scripts.render_greeting --template teachersday --text "Mrs. Eleanor Vance" [--font-size 64] [--color "#222"] [--photo me.jpg]

Templates are read from --templates-dir (default: TEMPLATES_DIR) and the result
is written to --out-dir (default: GENERATED_DIR) under a random UUID name.
Pass --preview to write the live-preview rendering instead, with slot guides
when --guides is set.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from domain.errors import GreetingError
from services.compositor import GreetingCompositor
from services.preview_renderer import ImageCanvas, render_preview
from services.template_store import TemplateStore
from settings import settings
from storage.file_storage import FileStorage

logger = logging.getLogger("render_greeting")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a greeting from a template.")
    parser.add_argument("--template", default=settings.DEFAULT_TEMPLATE, help="Template id (file name without extension).")
    parser.add_argument("--text", required=True, help="Name to place on the template.")
    parser.add_argument("--font-size", type=int, default=None, help="Override the slot's font size.")
    parser.add_argument("--color", default=None, help="Override the slot's text color.")
    parser.add_argument("--photo", default=None, help="Optional photo for the photo slot.")
    parser.add_argument("--templates-dir", default=str(settings.TEMPLATES_DIR))
    parser.add_argument("--out-dir", default=str(settings.GENERATED_DIR))
    parser.add_argument("--format", choices=["png", "jpeg"], default=settings.ARTIFACT_FORMAT)
    parser.add_argument("--preview", action="store_true", help="Write the live preview rendering instead.")
    parser.add_argument("--guides", action="store_true", help="Outline slots in the preview.")
    return parser


def main(argv: list[str] | None = None) -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)

    store = TemplateStore(args.templates_dir)
    storage = FileStorage(args.out_dir, public_prefix=settings.PUBLIC_GENERATED_PREFIX)
    photo = Path(args.photo) if args.photo else None

    try:
        if args.preview:
            descriptor = store.load_descriptor(args.template)
            canvas = ImageCanvas(settings.FONTS_DIR)
            layout = render_preview(
                descriptor,
                args.text,
                canvas,
                font_size=args.font_size,
                color=args.color,
                photo=photo,
                show_guides=args.guides,
                font_families=settings.FONT_FAMILIES,
            )
            artifact = storage.save_image(canvas.image, args.format, settings.ARTIFACT_QUALITY)
            logger.info("Preview lines=%s font_size=%s", layout.lines, layout.font_size_used)
        else:
            compositor = GreetingCompositor(
                store,
                storage,
                font_families=settings.FONT_FAMILIES,
                image_format=args.format,
                quality=settings.ARTIFACT_QUALITY,
            )
            artifact = compositor.render(args.template, args.text, args.font_size, args.color, photo)
    except GreetingError as e:
        logger.error("Failed: %s", e)
        return 1

    print(artifact.file_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
