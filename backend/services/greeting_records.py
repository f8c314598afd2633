"""
Optional record-keeping for generated greetings.

Best effort only: a missing database or a failed write is logged and never
fails the generation that triggered it.
"""
import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from domain.errors import PersistenceError
from domain.models import GreetingRecord
from repositories import GreetingsRepository

logger = logging.getLogger(__name__)

greetings_repo = GreetingsRepository()


def record_greeting(
    handle: Optional[sessionmaker],
    name: Optional[str],
    phone: Optional[str],
    image_url: str,
) -> Optional[GreetingRecord]:
    """
    Save a greeting if persistence is configured.

    Args:
        handle: Session factory from db.init_db, or None when disabled
        name: Text that was rendered
        phone: Optional phone supplied with the request
        image_url: Public URL of the artifact

    Returns:
        The stored record, or None when disabled or the write failed
    """
    if handle is None:
        return None
    record = GreetingRecord(id=None, name=name, phone=phone, image_url=image_url)
    try:
        with handle() as session:
            return greetings_repo.create_greeting(session, record)
    except PersistenceError:
        logger.warning("Failed to save greeting for %s", image_url, exc_info=True)
        return None
