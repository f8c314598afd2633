"""
Template store.

Templates live in one flat directory: an image named after the template id
(``<id>.png``, ``<id>.jpg`` or ``<id>.jpeg``) and an optional descriptor
``<id>.json``. The store resolves ids to files, loads descriptors (falling back
to the built-in default when there is no JSON), and lets the template editor
replace an existing descriptor.
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from domain.errors import MetadataParseError, TemplateNotFoundError
from domain.models import TemplateDescriptor, default_descriptor

logger = logging.getLogger(__name__)

# Probed in order; first match wins.
TEMPLATE_EXTENSIONS = (".png", ".jpg", ".jpeg")

_EXTENSION_RE = re.compile(r"\.(png|jpg|jpeg)$", re.IGNORECASE)
_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def normalize_template_id(template_id: str) -> str:
    """
    Strip a trailing image extension and reject anything that is not a plain name.

    Raises:
        TemplateNotFoundError: If the id could address a file outside the store
    """
    base = _EXTENSION_RE.sub("", (template_id or "").strip())
    if not _ID_RE.match(base):
        raise TemplateNotFoundError(template_id, f"Invalid template id: {template_id!r}")
    return base


class TemplateStore:
    """Read access to template assets, plus descriptor updates."""

    def __init__(self, templates_root: str | Path = "templates"):
        self.templates_root = Path(templates_root)
        # template_id -> (descriptor mtime_ns, image path, descriptor)
        self._cache: Dict[str, Tuple[Optional[int], Path, TemplateDescriptor]] = {}

    def resolve_image_path(self, template_id: str) -> Path:
        """
        Find the template image for an id.

        Raises:
            TemplateNotFoundError: If no image with a known extension exists
        """
        base = normalize_template_id(template_id)
        for ext in TEMPLATE_EXTENSIONS:
            candidate = self.templates_root / f"{base}{ext}"
            if candidate.is_file():
                return candidate
        raise TemplateNotFoundError(base)

    def metadata_path(self, template_id: str) -> Path:
        return self.templates_root / f"{normalize_template_id(template_id)}.json"

    def read_metadata(self, template_id: str) -> Optional[Dict[str, Any]]:
        """
        Raw descriptor JSON, or None when the template has no descriptor.

        Raises:
            MetadataParseError: If the file exists but is not valid JSON
        """
        meta_path = self.metadata_path(template_id)
        if not meta_path.exists():
            return None
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MetadataParseError(f"Failed to parse template metadata for {template_id}: {e}") from e

    def load_descriptor(self, template_id: str) -> TemplateDescriptor:
        """
        Resolve the template image and its slots.

        Templates without a descriptor use the built-in default slots.

        Raises:
            TemplateNotFoundError: If the template image is missing
            MetadataParseError: If the descriptor is malformed
        """
        base = normalize_template_id(template_id)
        image_path = self.resolve_image_path(base)
        meta_path = self.metadata_path(base)
        mtime = meta_path.stat().st_mtime_ns if meta_path.exists() else None

        cached = self._cache.get(base)
        if cached and cached[0] == mtime and cached[1] == image_path:
            return cached[2]

        raw = self.read_metadata(base)
        if raw is None:
            logger.info("No metadata for template %s; using default slots", base)
            descriptor = default_descriptor(base, image_path)
        else:
            descriptor = TemplateDescriptor.from_dict(base, raw, image_path=image_path)

        self._cache[base] = (mtime, image_path, descriptor)
        return descriptor

    def update_descriptor(self, template_id: str, meta: Any) -> TemplateDescriptor:
        """
        Replace an existing descriptor.

        Only templates that already have a descriptor file can be updated.
        The payload is validated before anything is written.

        Raises:
            TemplateNotFoundError: If there is no descriptor to replace
            MetadataParseError: If the payload is not a valid descriptor
        """
        base = normalize_template_id(template_id)
        meta_path = self.metadata_path(base)
        if not meta_path.exists():
            raise TemplateNotFoundError(base)

        descriptor = TemplateDescriptor.from_dict(base, meta)
        meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")
        self._cache.pop(base, None)
        logger.info("Updated metadata for template %s", base)
        return descriptor

    def check_template(self, template_id: str) -> Optional[Tuple[str, int]]:
        """Return (file name, size) of a non-empty template image, else None."""
        try:
            path = self.resolve_image_path(template_id)
        except TemplateNotFoundError:
            return None
        size = path.stat().st_size
        if size <= 0:
            return None
        return path.name, size

    def list_templates(self) -> List[str]:
        """Ids of all templates that have an image."""
        if not self.templates_root.exists():
            return []
        ids = set()
        for path in self.templates_root.iterdir():
            if path.is_file() and path.suffix.lower() in TEMPLATE_EXTENSIONS and _ID_RE.match(path.stem):
                ids.add(path.stem)
        return sorted(ids)
