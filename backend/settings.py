import os
from pathlib import Path
from typing import List, Optional

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _as_list(val: str | None, default: List[str]) -> List[str]:
    if val is None:
        return list(default)
    items = [part.strip() for part in val.split(",")]
    return [item for item in items if item] or list(default)


class Settings:
    def __init__(self) -> None:
        self.TEMPLATES_DIR: Path = Path(os.getenv("TEMPLATES_DIR", "templates"))
        self.GENERATED_DIR: Path = Path(os.getenv("GENERATED_DIR", "generated"))
        self.FONTS_DIR: Path = Path(os.getenv("FONTS_DIR", "fonts"))
        self.FONT_FAMILIES: List[str] = _as_list(
            os.getenv("FONT_FAMILIES"), ["Montserrat", "Arial", "sans-serif"]
        )
        self.PUBLIC_GENERATED_PREFIX: str = os.getenv("PUBLIC_GENERATED_PREFIX", "/api/generated")
        self.ARTIFACT_FORMAT: str = os.getenv("ARTIFACT_FORMAT", "png").lower()
        self.ARTIFACT_QUALITY: int = _as_int(os.getenv("ARTIFACT_QUALITY"), 90)
        self.DEFAULT_TEMPLATE: str = os.getenv("DEFAULT_TEMPLATE", "teachersday")
        self.MAX_NAME_LENGTH: int = _as_int(os.getenv("MAX_NAME_LENGTH"), 25)
        self.MAX_PHONE_LENGTH: int = _as_int(os.getenv("MAX_PHONE_LENGTH"), 50)
        self.MAX_PHOTO_BYTES: int = _as_int(os.getenv("MAX_PHOTO_BYTES"), 5 * 1024 * 1024)
        self.RETENTION_HOURS: int = _as_int(os.getenv("RETENTION_HOURS"), 24)
        self.RETENTION_ENABLED: bool = _as_bool(os.getenv("RETENTION_ENABLED"), True)
        self.DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None


settings = Settings()
