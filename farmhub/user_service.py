# farmhub/user_service.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from farmhub import models, schemas
from farmhub.conflicts import USER_UNIQUE_FIELDS, unique_conflicts
from farmhub.errors import NotFoundError
from farmhub.pagination import paginate, resolve_page, search_clause
from farmhub.security import hash_pin

logger = logging.getLogger(__name__)

PinHasher = Callable[[str], str]


def to_public_user(user: models.User) -> schemas.UserOut:
    """Redaction step for every outbound user: only UserOut fields survive, never the PIN."""
    return schemas.UserOut.model_validate(user)


def user_search_clause(search: Optional[str]):
    # phone_number matches case-sensitively, as the listing always has
    return search_clause(
        search,
        insensitive=(models.User.first_name, models.User.last_name, models.User.email),
        sensitive=(models.User.phone_number,),
    )


class UserService:
    def __init__(self, *, pin_hasher: PinHasher | None = None):
        # DI
        self._hash_pin = pin_hasher or hash_pin

    @staticmethod
    def _get_or_404(db: Session, user_id: str, *, with_farms: bool = False) -> models.User:
        options = [selectinload(models.User.farms)] if with_farms else []
        obj = db.get(models.User, user_id, options=options)
        if not obj:
            raise NotFoundError(f"User with ID {user_id} not found")
        return obj

    def find_all(
        self,
        db: Session,
        page: Any = None,
        limit: Any = None,
        search: Optional[str] = None,
    ) -> schemas.Page[schemas.UserOut]:
        req = resolve_page(page, limit)
        rows, meta = paginate(
            db,
            models.User,
            req,
            user_search_clause(search),
            options=[selectinload(models.User.farms)],
        )
        return schemas.Page[schemas.UserOut](data=[to_public_user(u) for u in rows], meta=meta)

    def find_one(self, db: Session, user_id: str) -> schemas.UserOut:
        return to_public_user(self._get_or_404(db, user_id, with_farms=True))

    def create(self, db: Session, payload: schemas.UserCreate) -> schemas.UserOut:
        data = payload.model_dump(exclude={"pin"})
        obj = models.User(**data, pin=self._hash_pin(payload.pin))
        with unique_conflicts(db, USER_UNIQUE_FIELDS):
            db.add(obj)
            db.commit()
        db.refresh(obj)
        logger.info("Created user %s", obj.id)
        return to_public_user(obj)

    def update(self, db: Session, user_id: str, patch: schemas.UserUpdate) -> schemas.UserOut:
        obj = self._get_or_404(db, user_id)
        changes = patch.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(obj, key, value)
        with unique_conflicts(db, USER_UNIQUE_FIELDS):
            db.commit()
        db.refresh(obj)
        logger.info("Updated user %s (%s)", user_id, ", ".join(sorted(changes)) or "no fields")
        return to_public_user(obj)

    def remove(self, db: Session, user_id: str) -> schemas.Message:
        obj = self._get_or_404(db, user_id)
        db.delete(obj)
        try:
            db.commit()
        except SQLAlchemyError:
            # owned farms block the delete (FK restrict); nothing is cascaded
            db.rollback()
            raise
        logger.info("Deleted user %s", user_id)
        return schemas.Message(message="User deleted successfully")
