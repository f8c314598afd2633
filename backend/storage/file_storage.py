"""
File storage abstraction.

Provides a simple interface for storing generated greetings.
Currently uses the local filesystem; artifacts land in one flat directory
as generated/{uuid}.{ext} and are served publicly.
"""
import logging
import os
import uuid
from pathlib import Path

from PIL import Image

from domain.models import GeneratedArtifact

logger = logging.getLogger(__name__)

# Prefix of in-progress writes; never served and swept like any expired file.
PARTIAL_PREFIX = ".partial-"

_FORMAT_EXTENSIONS = {
    "png": "png",
    "jpeg": "jpg",
    "jpg": "jpg",
}


class FileStorage:
    """
    Local file storage for generated artifacts.

    Artifact names are random UUIDs so concurrent requests never collide, and
    every image is written to a hidden temporary name first and renamed into
    place, so a public path only ever points at a complete file.
    """

    def __init__(
        self,
        generated_root: str | Path = "generated",
        public_prefix: str = "/api/generated",
    ):
        self.generated_root = Path(generated_root)
        self.public_prefix = public_prefix.rstrip("/")
        self.generated_root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def extension_for(image_format: str) -> str:
        try:
            return _FORMAT_EXTENSIONS[image_format.lower()]
        except KeyError:
            raise ValueError(f"Unsupported artifact format: {image_format}")

    def new_artifact_name(self, image_format: str = "png") -> str:
        """Generate a globally unique artifact filename."""
        return f"{uuid.uuid4()}.{self.extension_for(image_format)}"

    def public_url(self, filename: str) -> str:
        return f"{self.public_prefix}/{filename}"

    def save_image(
        self,
        image: Image.Image,
        image_format: str = "png",
        quality: int = 90,
    ) -> GeneratedArtifact:
        """
        Encode an image into generated storage.

        Args:
            image: Flattened image to encode
            image_format: "png" or "jpeg"
            quality: Encoder quality (JPEG quality; PNG is lossless)

        Returns:
            GeneratedArtifact with absolute file path and public URL
        """
        filename = self.new_artifact_name(image_format)
        final_path = self.generated_root / filename
        partial_path = self.generated_root / f"{PARTIAL_PREFIX}{filename}"

        if image_format.lower() in ("jpeg", "jpg"):
            save_kwargs = {"format": "JPEG", "quality": quality, "optimize": True}
            if image.mode != "RGB":
                image = image.convert("RGB")
        else:
            save_kwargs = {"format": "PNG", "optimize": True}

        try:
            image.save(partial_path, **save_kwargs)
            os.replace(partial_path, final_path)
        except Exception:
            if partial_path.exists():
                partial_path.unlink()
            raise

        logger.info("Wrote artifact %s", final_path)
        return GeneratedArtifact(file_path=final_path.resolve(), public_url=self.public_url(filename))

