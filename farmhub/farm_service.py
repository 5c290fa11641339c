# farmhub/farm_service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session, joinedload

from farmhub import models, schemas
from farmhub.errors import NotFoundError
from farmhub.pagination import paginate, resolve_page, search_clause

logger = logging.getLogger(__name__)


def farm_search_clause(search: Optional[str]):
    return search_clause(
        search,
        insensitive=(models.Farm.name, models.Farm.county, models.Farm.administrative_location),
    )


def to_farm_out(farm: models.Farm) -> schemas.FarmOut:
    # FarmOwner is an allow-list of the owner's public fields
    return schemas.FarmOut.model_validate(farm)


class FarmService:
    @staticmethod
    def _get_or_404(db: Session, farm_id: str) -> models.Farm:
        obj = db.get(models.Farm, farm_id, options=[joinedload(models.Farm.user)])
        if not obj:
            raise NotFoundError(f"Farm with ID {farm_id} not found")
        return obj

    def create(self, db: Session, payload: schemas.FarmCreate) -> schemas.FarmOut:
        # explicit owner check so callers get a clean 404 instead of an FK failure
        if db.get(models.User, payload.user_id) is None:
            logger.warning("Refused farm for unknown user %s", payload.user_id)
            raise NotFoundError("User not found")

        obj = models.Farm(**payload.model_dump())
        db.add(obj)
        db.commit()
        db.refresh(obj)
        logger.info("Created farm %s for user %s", obj.id, obj.user_id)
        return to_farm_out(obj)

    def find_all(
        self,
        db: Session,
        page: Any = None,
        limit: Any = None,
        search: Optional[str] = None,
    ) -> schemas.Page[schemas.FarmOut]:
        req = resolve_page(page, limit)
        rows, meta = paginate(
            db,
            models.Farm,
            req,
            farm_search_clause(search),
            options=[joinedload(models.Farm.user)],
        )
        return schemas.Page[schemas.FarmOut](data=[to_farm_out(f) for f in rows], meta=meta)

    def find_one(self, db: Session, farm_id: str) -> schemas.FarmOut:
        return to_farm_out(self._get_or_404(db, farm_id))

    def update(self, db: Session, farm_id: str, patch: schemas.FarmUpdate) -> schemas.FarmOut:
        obj = self._get_or_404(db, farm_id)
        changes = patch.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        logger.info("Updated farm %s (%s)", farm_id, ", ".join(sorted(changes)) or "no fields")
        return to_farm_out(obj)

    def remove(self, db: Session, farm_id: str) -> schemas.Message:
        obj = self._get_or_404(db, farm_id)
        db.delete(obj)
        db.commit()
        logger.info("Deleted farm %s", farm_id)
        return schemas.Message(message="Farm deleted successfully")
