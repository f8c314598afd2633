"""
Shared service instances for the API, built from settings.
"""
from services.compositor import GreetingCompositor
from services.template_store import TemplateStore
from settings import settings
from storage.file_storage import FileStorage

store = TemplateStore(settings.TEMPLATES_DIR)
storage = FileStorage(settings.GENERATED_DIR, public_prefix=settings.PUBLIC_GENERATED_PREFIX)
compositor = GreetingCompositor(
    store,
    storage,
    font_families=settings.FONT_FAMILIES,
    image_format=settings.ARTIFACT_FORMAT,
    quality=settings.ARTIFACT_QUALITY,
)
