"""
Greeting repository backed by SQLAlchemy.
"""
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.errors import PersistenceError
from domain.models import GreetingRecord
from repositories.models import GreetingORM


def _record_from_orm(orm: GreetingORM) -> GreetingRecord:
    return GreetingRecord(
        id=orm.id,
        name=orm.name,
        phone=orm.phone,
        image_url=orm.image_url,
        created_at=orm.created_at,
    )


class GreetingsRepository:
    """Insert and read greeting records."""

    def create_greeting(self, session: Session, record: GreetingRecord) -> GreetingRecord:
        orm = GreetingORM(
            name=record.name or None,
            phone=record.phone or None,
            image_url=record.image_url,
            created_at=record.created_at,
        )
        try:
            session.add(orm)
            session.commit()
            session.refresh(orm)
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Failed to save greeting: {e}") from e
        return _record_from_orm(orm)

    def list_greetings(self, session: Session) -> List[GreetingRecord]:
        rows = session.query(GreetingORM).order_by(GreetingORM.id).all()
        return [_record_from_orm(r) for r in rows]
