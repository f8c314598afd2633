"""
Error types raised by the greeting pipeline.
"""


class GreetingError(Exception):
    """Base class for errors surfaced by template loading and rendering."""


class TemplateNotFoundError(GreetingError):
    """No template image exists for the requested id."""

    def __init__(self, template_id: str, message: str | None = None):
        self.template_id = template_id
        super().__init__(message or f"Template not found: {template_id}")


class MetadataParseError(GreetingError):
    """A template descriptor exists but is malformed."""


class TemplateImageError(GreetingError):
    """A template image exists but cannot be decoded."""


class PhotoProcessingError(GreetingError):
    """A supplied photo cannot be decoded or resized."""


class PersistenceError(GreetingError):
    """The optional greeting record could not be written."""


class SlotConfigurationError(GreetingError, ValueError):
    """A slot is missing geometry the layout needs, or a size is not positive."""


class TextRenderError(GreetingError):
    """The text overlay could not be rasterized."""
